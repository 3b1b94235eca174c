"""Thread-safe settings shared between the ConfigMap and pod reconcilers."""

import logging
import threading
from datetime import timedelta

from .config import DEFAULT_MAX_POD_AGE

logger = logging.getLogger(__name__)


class PodReaperConfig:
    """
    Holds the runtime settings used by PodReconciler.

    Written by ConfigMapReconciler, read by PodReconciler. All access goes
    through the getter and setter, which serialize on a single lock.
    """

    def __init__(self, max_pod_age: timedelta = DEFAULT_MAX_POD_AGE):
        """
        Initialize the config.

        Args:
            max_pod_age: Minimum age of a non-running pod before it is evicted
        """
        self._max_pod_age = max_pod_age
        self._lock = threading.Lock()

    def get_max_pod_age(self) -> timedelta:
        """Get the currently effective maximum pod age."""
        with self._lock:
            return self._max_pod_age

    def set_max_pod_age(self, max_pod_age: timedelta) -> None:
        """
        Replace the maximum pod age.

        The caller is responsible for validating the value.
        """
        with self._lock:
            self._max_pod_age = max_pod_age
        logger.debug(f"Max pod age set to {max_pod_age}")
