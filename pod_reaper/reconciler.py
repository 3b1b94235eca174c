"""Reconciliation logic for evicting long-lived non-running pods."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from kubernetes.client.rest import ApiException

from .config import (
    EVICTABLE_PHASES,
    EXCLUDED_NAMESPACE,
    MAX_REQUEUE_INTERVAL,
    REQUEUE_PADDING,
)
from .kube_client import KubeClient
from .shared_config import PodReaperConfig
from .utils import ObjectKey, format_duration, is_excluded_namespace

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """Raised when a reconciliation fails and should be retried."""


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a successful reconciliation."""
    requeue_after: Optional[timedelta] = None


class Action(str, Enum):
    SKIP = "Skip"
    DELETE_NOW = "DeleteNow"
    REQUEUE_AFTER = "RequeueAfter"


@dataclass(frozen=True)
class EvictionDecision:
    """What to do with a pod on this invocation."""
    action: Action
    requeue_after: Optional[timedelta] = None


def get_pod_phase(pod) -> Optional[str]:
    """Get the phase of a pod, or None if it has no status yet."""
    if pod.status is None:
        return None
    return pod.status.phase


def is_evictable_phase(phase: Optional[str]) -> bool:
    """Check if a pod phase is a non-running phase subject to eviction."""
    return phase in EVICTABLE_PHASES


def should_delete_pod(pod) -> bool:
    """Check if a pod is in a phase where it may be evicted."""
    return is_evictable_phase(get_pod_phase(pod))


def requeue_interval(max_pod_age: timedelta) -> timedelta:
    """
    Delay before a pod that is not old enough is checked again.

    Waiting the exact remaining time would ignore config changes until the
    original deadline, so the wait is capped at MAX_REQUEUE_INTERVAL.
    The padding keeps the delay positive for very small max ages.
    """
    return min(MAX_REQUEUE_INTERVAL, max_pod_age + REQUEUE_PADDING)


def decide_eviction(phase: Optional[str], pod_age: timedelta, max_pod_age: timedelta) -> EvictionDecision:
    """
    Decide the fate of a pod from its phase and age.

    Args:
        phase: Pod phase
        pod_age: Time since the pod was created
        max_pod_age: Currently effective maximum pod age

    Returns:
        The EvictionDecision
    """
    if not is_evictable_phase(phase):
        return EvictionDecision(Action.SKIP)

    if pod_age < max_pod_age:
        return EvictionDecision(Action.REQUEUE_AFTER, requeue_interval(max_pod_age))

    return EvictionDecision(Action.DELETE_NOW)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PodReconciler:
    """Deletes pods that have stayed in a non-running phase for too long."""

    def __init__(
        self,
        kube: KubeClient,
        config: PodReaperConfig,
        excluded_namespace: str = EXCLUDED_NAMESPACE,
        dry_run: bool = False,
        delete_retry_after: Optional[timedelta] = None,
        clock: Callable[[], datetime] = _utcnow
    ):
        """
        Initialize the reconciler.

        Args:
            kube: Client used to fetch and delete pods
            config: Shared settings providing the maximum pod age
            excluded_namespace: Namespace whose pods are never deleted
            dry_run: If True, don't delete anything
            delete_retry_after: If set, a failed delete is requeued after this
                delay instead of being raised
            clock: Returns the current time (timezone aware)
        """
        self.kube = kube
        self.config = config
        self.excluded_namespace = excluded_namespace
        self.dry_run = dry_run
        self.delete_retry_after = delete_retry_after
        self._clock = clock

    def pod_age(self, pod) -> timedelta:
        """
        Get the time elapsed since a pod was created.

        Raises:
            ReconcileError: If the pod has no creation timestamp
        """
        created_at = pod.metadata.creation_timestamp
        if not created_at:
            raise ReconcileError(
                f"Pod {pod.metadata.namespace}/{pod.metadata.name} has no creation timestamp"
            )
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return self._clock() - created_at

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        """
        Reconcile a single pod.

        Args:
            key: Namespace and name of the pod

        Returns:
            ReconcileResult, with requeue_after set if the pod must be checked again

        Raises:
            ReconcileError: If the pod is malformed or could not be deleted
            ApiException: If the pod could not be fetched
        """
        if is_excluded_namespace(key.namespace, self.excluded_namespace):
            logger.debug(f"Pod {key} is in excluded namespace, skipping")
            return ReconcileResult()

        pod = self.kube.get_pod(key.namespace, key.name)
        if pod is None:
            return ReconcileResult()

        phase = get_pod_phase(pod)
        if not is_evictable_phase(phase):
            logger.debug(f"Pod {key} is {phase}, skipping")
            return ReconcileResult()

        pod_age = self.pod_age(pod)
        max_pod_age = self.config.get_max_pod_age()

        decision = decide_eviction(phase, pod_age, max_pod_age)

        if decision.action == Action.REQUEUE_AFTER:
            logger.debug(
                f"Pod {key} is {format_duration(pod_age)} old, "
                f"checking again in {format_duration(decision.requeue_after)}"
            )
            return ReconcileResult(requeue_after=decision.requeue_after)

        logger.info(
            f"Deleting non-running pod {key} (phase={phase}, "
            f"age={format_duration(pod_age)}, maxPodAge={format_duration(max_pod_age)})"
        )

        if self.dry_run:
            logger.info(f"[DRY-RUN] Would delete pod {key}")
            return ReconcileResult()

        try:
            self.kube.delete_pod(key.namespace, key.name)
        except ApiException as e:
            if self.delete_retry_after is not None:
                logger.error(f"Error deleting pod {key}: {e}")
                return ReconcileResult(requeue_after=self.delete_retry_after)
            raise ReconcileError(f"Failed to delete pod {key}: {e}") from e

        logger.info(f"Deleted pod {key}")
        return ReconcileResult()
