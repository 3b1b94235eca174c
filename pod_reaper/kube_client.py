"""Client for the Kubernetes objects read and deleted by Pod Reaper."""

import logging
from typing import Optional

from kubernetes import client, watch
from kubernetes.client.rest import ApiException

logger = logging.getLogger(__name__)


class KubeClient:
    """Thin wrapper around CoreV1Api for pods and ConfigMaps."""

    def __init__(self, api: Optional[client.CoreV1Api] = None):
        """
        Initialize the client.

        Args:
            api: CoreV1Api instance to use (created from the loaded config if omitted)
        """
        self.v1 = api or client.CoreV1Api()

    def get_pod(self, namespace: str, name: str) -> Optional[client.V1Pod]:
        """
        Get a pod.

        Args:
            namespace: Pod namespace
            name: Pod name

        Returns:
            The pod, or None if it does not exist

        Raises:
            ApiException: For any API error other than not found
        """
        try:
            return self.v1.read_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"Pod {namespace}/{name} not found")
                return None
            raise

    def delete_pod(self, namespace: str, name: str) -> None:
        """
        Request deletion of a pod.

        A pod that is already gone counts as deleted. Success only means the
        request was accepted, not that the pod has disappeared.

        Raises:
            ApiException: For any API error other than not found
        """
        try:
            self.v1.delete_namespaced_pod(name=name, namespace=namespace)
        except ApiException as e:
            if e.status != 404:
                raise
            logger.debug(f"Pod {namespace}/{name} already deleted")

    def get_config_map(self, namespace: str, name: str) -> Optional[client.V1ConfigMap]:
        """
        Get a ConfigMap.

        Returns:
            The ConfigMap, or None if it does not exist

        Raises:
            ApiException: For any API error other than not found
        """
        try:
            return self.v1.read_namespaced_config_map(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"ConfigMap {namespace}/{name} not found")
                return None
            raise

    def watch_pods(self, timeout: int = 300):
        """
        Create a watch stream for pods in all namespaces.

        Yields:
            Watch events
        """
        w = watch.Watch()
        for event in w.stream(self.v1.list_pod_for_all_namespaces, timeout_seconds=timeout):
            yield event

    def watch_config_map(self, namespace: str, name: str, timeout: int = 300):
        """
        Create a watch stream for a single ConfigMap.

        Yields:
            Watch events
        """
        w = watch.Watch()
        stream = w.stream(
            self.v1.list_namespaced_config_map,
            namespace=namespace,
            field_selector=f"metadata.name={name}",
            timeout_seconds=timeout
        )
        for event in stream:
            yield event
