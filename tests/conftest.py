"""Shared fixtures for Pod Reaper tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from pod_reaper.kube_client import KubeClient
from pod_reaper.shared_config import PodReaperConfig

NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_pod(name="job-7", namespace="default", phase="Failed", age=timedelta(hours=2), created_at=None):
    """Build a V1Pod created `age` before NOW (or at `created_at` if given)."""
    if created_at is None and age is not None:
        created_at = NOW - age
    return client.V1Pod(
        metadata=client.V1ObjectMeta(
            name=name,
            namespace=namespace,
            creation_timestamp=created_at,
        ),
        status=client.V1PodStatus(phase=phase),
    )


def make_config_map(data, name="pod-reaper-config", namespace="pod-reaper"):
    return client.V1ConfigMap(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        data=data,
    )


def not_found():
    return ApiException(status=404, reason="Not Found")


@pytest.fixture
def api():
    """Mocked CoreV1Api."""
    return MagicMock()


@pytest.fixture
def kube(api):
    return KubeClient(api=api)


@pytest.fixture
def shared_config():
    return PodReaperConfig(timedelta(hours=1))
