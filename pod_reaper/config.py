"""Configuration settings for Pod Reaper."""

from datetime import timedelta

# Namespace whose pods are never evicted
EXCLUDED_NAMESPACE = "kube-system"

# ConfigMap holding the runtime settings ("namespace/name")
DEFAULT_CONFIG_MAP = "pod-reaper/pod-reaper-config"
MAX_POD_AGE_KEY = "maxPodAge"

# Used until the ConfigMap has been read
DEFAULT_MAX_POD_AGE = timedelta(hours=1)

# Pods not yet old enough are re-checked at least this often
MAX_REQUEUE_INTERVAL = timedelta(minutes=1)
REQUEUE_PADDING = timedelta(seconds=1)

# Pod phases eligible for eviction
EVICTABLE_PHASES = frozenset({"Pending", "Succeeded", "Failed"})

# Watch settings
WATCH_TIMEOUT_SECONDS = 300
WATCH_ERROR_BACKOFF_SECONDS = 5

# Fixed delay before a failed reconciliation is retried
RETRY_DELAY = timedelta(seconds=5)

DEFAULT_POD_WORKERS = 4
