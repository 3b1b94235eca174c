"""Main controller logic for Pod Reaper."""

import logging
import threading
import time
from datetime import timedelta
from typing import List, Optional

from kubernetes.client.rest import ApiException

from .config import (
    DEFAULT_POD_WORKERS,
    EXCLUDED_NAMESPACE,
    RETRY_DELAY,
    WATCH_ERROR_BACKOFF_SECONDS,
    WATCH_TIMEOUT_SECONDS,
)
from .config_sync import ConfigMapReconciler
from .kube_client import KubeClient
from .reconciler import PodReconciler
from .shared_config import PodReaperConfig
from .utils import ObjectKey, format_duration, is_config_map_key, is_excluded_namespace
from .workqueue import WorkQueue

logger = logging.getLogger(__name__)

# How long idle workers block before checking the stop event
_QUEUE_POLL_SECONDS = 1.0


class PodReaperController:
    """
    Watches pods and the settings ConfigMap and feeds them to their reconcilers.

    Each object kind has its own work queue. Workers re-queue a key after
    RETRY_DELAY when its reconciliation raises, and after the requested delay
    when the reconciler asks for a requeue.
    """

    def __init__(
        self,
        config_map_key: ObjectKey,
        config: Optional[PodReaperConfig] = None,
        kube: Optional[KubeClient] = None,
        excluded_namespace: str = EXCLUDED_NAMESPACE,
        workers: int = DEFAULT_POD_WORKERS,
        dry_run: bool = False,
        delete_retry_after: Optional[timedelta] = None,
        retry_delay: timedelta = RETRY_DELAY
    ):
        """
        Initialize the controller.

        Args:
            config_map_key: Namespace and name of the settings ConfigMap
            config: Shared settings (created with defaults if omitted)
            kube: Kubernetes client (created from the loaded config if omitted)
            excluded_namespace: Namespace whose pods are never deleted
            workers: Number of pod worker threads
            dry_run: If True, don't delete anything
            delete_retry_after: Explicit requeue delay after a failed delete
            retry_delay: Delay before retrying a failed reconciliation
        """
        self.config_map_key = config_map_key
        self.config = config or PodReaperConfig()
        self.kube = kube or KubeClient()
        self.excluded_namespace = excluded_namespace
        self.workers = workers
        self.dry_run = dry_run
        self.retry_delay = retry_delay

        self.config_reconciler = ConfigMapReconciler(self.kube, self.config, config_map_key)
        self.pod_reconciler = PodReconciler(
            self.kube,
            self.config,
            excluded_namespace=excluded_namespace,
            dry_run=dry_run,
            delete_retry_after=delete_retry_after
        )

        self.pod_queue = WorkQueue("pods")
        self.config_queue = WorkQueue("configmap")

        self._stop_event = threading.Event()
        self._threads: List[threading.Thread] = []

    def handle_pod_event(self, event_type: str, pod) -> None:
        """
        Handle a pod watch event.

        Args:
            event_type: ADDED, MODIFIED, or DELETED
            pod: The pod object from the event
        """
        namespace = pod.metadata.namespace
        if is_excluded_namespace(namespace, self.excluded_namespace):
            return

        key = ObjectKey(namespace, pod.metadata.name)
        logger.debug(f"Pod {event_type}: {key}")
        self.pod_queue.add(key)

    def handle_config_map_event(self, event_type: str, config_map) -> None:
        """
        Handle a ConfigMap watch event.

        Args:
            event_type: ADDED, MODIFIED, or DELETED
            config_map: The ConfigMap object from the event
        """
        key = ObjectKey(config_map.metadata.namespace, config_map.metadata.name)
        if not is_config_map_key(key, self.config_map_key):
            return

        logger.info(f"ConfigMap {event_type}: {key}")
        self.config_queue.add(key)

    def process_next(self, queue: WorkQueue, reconciler) -> bool:
        """
        Reconcile the next key from a queue.

        Args:
            queue: Queue to take the key from
            reconciler: PodReconciler or ConfigMapReconciler

        Returns:
            False once the queue is shut down, True otherwise
        """
        key = queue.get(timeout=_QUEUE_POLL_SECONDS)
        if key is None:
            return not queue.shutting_down

        try:
            result = reconciler.reconcile(key)
        except Exception as e:
            logger.error(
                f"Error reconciling {queue.name} {key}, "
                f"retrying in {format_duration(self.retry_delay)}: {e}"
            )
            queue.add_after(key, self.retry_delay)
        else:
            if result.requeue_after is not None:
                queue.add_after(key, result.requeue_after)
        finally:
            queue.done(key)

        return True

    def _run_worker(self, queue: WorkQueue, reconciler) -> None:
        while not self._stop_event.is_set():
            if not self.process_next(queue, reconciler):
                break

    def _watch_loop(self, name: str, stream_factory, handler) -> None:
        logger.info(f"Starting {name} watcher...")

        while not self._stop_event.is_set():
            try:
                for event in stream_factory():
                    if self._stop_event.is_set():
                        break
                    handler(event["type"], event["object"])

            except ApiException as e:
                logger.error(f"{name} watch error: {e}")
                self._stop_event.wait(WATCH_ERROR_BACKOFF_SECONDS)
            except Exception as e:
                logger.error(f"Unexpected error in {name} watcher: {e}")
                self._stop_event.wait(WATCH_ERROR_BACKOFF_SECONDS)

    def watch_pods(self) -> None:
        """Watch for pod events in a loop."""
        self._watch_loop(
            "pod",
            lambda: self.kube.watch_pods(timeout=WATCH_TIMEOUT_SECONDS),
            self.handle_pod_event
        )

    def watch_config_map(self) -> None:
        """Watch for events on the settings ConfigMap in a loop."""
        self._watch_loop(
            "configmap",
            lambda: self.kube.watch_config_map(
                self.config_map_key.namespace,
                self.config_map_key.name,
                timeout=WATCH_TIMEOUT_SECONDS
            ),
            self.handle_config_map_event
        )

    def load_config(self) -> None:
        """Apply the ConfigMap settings once before pods are processed."""
        logger.info(f"Loading configuration from ConfigMap {self.config_map_key}...")
        try:
            self.config_reconciler.reconcile(self.config_map_key)
        except Exception as e:
            logger.error(f"Error loading configuration, using {self.config.get_max_pod_age()}: {e}")

    def _start_thread(self, target, name: str, *args) -> None:
        thread = threading.Thread(target=target, name=name, args=args, daemon=True)
        thread.start()
        self._threads.append(thread)

    def start(self) -> None:
        """Start watcher and worker threads."""
        self.load_config()

        self._start_thread(self._run_worker, "config-worker", self.config_queue, self.config_reconciler)
        for i in range(self.workers):
            self._start_thread(self._run_worker, f"pod-worker-{i}", self.pod_queue, self.pod_reconciler)

        self._start_thread(self.watch_config_map, "configmap-watcher")
        self._start_thread(self.watch_pods, "pod-watcher")

    def run(self) -> None:
        """Run the controller until interrupted."""
        logger.info("=" * 60)
        logger.info("Starting Pod Reaper")
        logger.info("=" * 60)
        logger.info(f"ConfigMap: {self.config_map_key}")
        logger.info(f"Excluded namespace: {self.excluded_namespace}")
        logger.info(f"Pod workers: {self.workers}")
        logger.info(f"Dry run: {self.dry_run}")

        self.start()

        logger.info("Controller is running. Press Ctrl+C to stop.")

        # Keep main thread alive
        try:
            while not self._stop_event.is_set():
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutdown requested...")
            self.stop()

    def stop(self) -> None:
        """Stop the controller."""
        logger.info("Stopping controller...")
        self._stop_event.set()
        self.pod_queue.shut_down()
        self.config_queue.shut_down()
