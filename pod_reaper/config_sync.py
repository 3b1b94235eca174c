"""Reconciliation of the Pod Reaper ConfigMap into the shared settings."""

import logging

from .config import MAX_POD_AGE_KEY
from .kube_client import KubeClient
from .reconciler import ReconcileResult
from .shared_config import PodReaperConfig
from .utils import DurationError, ObjectKey, format_duration, is_config_map_key, parse_duration

logger = logging.getLogger(__name__)


class ConfigMapReconciler:
    """
    Reconciles a single ConfigMap into a PodReaperConfig.

    Invalid settings are logged and ignored without a retry; editing the
    ConfigMap triggers a new reconciliation. A negative maxPodAge is
    treated as invalid, so it never causes every eligible pod to be deleted.
    """

    def __init__(self, kube: KubeClient, config: PodReaperConfig, config_map_key: ObjectKey):
        """
        Initialize the reconciler.

        Args:
            kube: Client used to fetch the ConfigMap
            config: Shared settings to update
            config_map_key: Namespace and name of the ConfigMap to reconcile
        """
        self.kube = kube
        self.config = config
        self.config_map_key = config_map_key

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """
        Apply the ConfigMap settings.

        Args:
            key: Namespace and name of the changed ConfigMap

        Returns:
            ReconcileResult (never requests a requeue)

        Raises:
            ApiException: If the ConfigMap could not be fetched
        """
        if not is_config_map_key(key, self.config_map_key):
            return ReconcileResult()

        config_map = self.kube.get_config_map(key.namespace, key.name)
        if config_map is None:
            logger.info(f"ConfigMap {key} not found, keeping current configuration")
            return ReconcileResult()

        data = config_map.data or {}

        if MAX_POD_AGE_KEY not in data:
            logger.error(
                f"Missing {MAX_POD_AGE_KEY} property in ConfigMap {key}, "
                f"configuration will not be updated"
            )
            return ReconcileResult()

        value = data[MAX_POD_AGE_KEY]
        try:
            max_pod_age = parse_duration(value)
        except DurationError:
            logger.error(
                f"Invalid {MAX_POD_AGE_KEY} property in ConfigMap {key}: {value!r}, "
                f"configuration will not be updated"
            )
            return ReconcileResult()

        if max_pod_age.total_seconds() < 0:
            logger.error(
                f"Negative {MAX_POD_AGE_KEY} property in ConfigMap {key}: {value!r}, "
                f"configuration will not be updated"
            )
            return ReconcileResult()

        current = self.config.get_max_pod_age()
        self.config.set_max_pod_age(max_pod_age)

        logger.info(f"Configuration updated: maxPodAge {format_duration(current)} -> {format_duration(max_pod_age)}")
        return ReconcileResult()
