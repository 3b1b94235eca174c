"""Tests for the pod eviction reconciler."""

from datetime import datetime, timedelta

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from pod_reaper.reconciler import (
    Action,
    EvictionDecision,
    PodReconciler,
    ReconcileError,
    ReconcileResult,
    decide_eviction,
    requeue_interval,
    should_delete_pod,
)
from pod_reaper.utils import ObjectKey
from tests.conftest import NOW, make_pod, not_found

KEY = ObjectKey("default", "job-7")


@pytest.fixture
def reconciler(kube, shared_config):
    return PodReconciler(kube, shared_config, clock=lambda: NOW)


@pytest.mark.parametrize("phase, expected", [
    ("Pending", True),
    ("Succeeded", True),
    ("Failed", True),
    ("Running", False),
    ("Unknown", False),
])
def test_should_delete_pod(phase, expected):
    pod = client.V1Pod(status=client.V1PodStatus(phase=phase))
    assert should_delete_pod(pod) is expected


def test_should_delete_pod_without_status():
    assert not should_delete_pod(client.V1Pod())


@pytest.mark.parametrize("max_age, expected", [
    (timedelta(hours=1), timedelta(minutes=1)),
    (timedelta(seconds=59), timedelta(minutes=1)),
    (timedelta(seconds=30), timedelta(seconds=31)),
    (timedelta(0), timedelta(seconds=1)),
])
def test_requeue_interval(max_age, expected):
    assert requeue_interval(max_age) == expected


@pytest.mark.parametrize("age, max_age", [
    (timedelta(hours=1), timedelta(hours=1)),
    (timedelta(hours=2), timedelta(hours=1)),
    (timedelta(seconds=1), timedelta(0)),
])
def test_decide_eviction_deletes_old_pods(age, max_age):
    for phase in ("Pending", "Succeeded", "Failed"):
        assert decide_eviction(phase, age, max_age) == EvictionDecision(Action.DELETE_NOW)


@pytest.mark.parametrize("age, max_age", [
    (timedelta(minutes=20), timedelta(hours=1)),
    (timedelta(seconds=10), timedelta(seconds=30)),
    (timedelta(hours=1) - timedelta(microseconds=1), timedelta(hours=1)),
])
def test_decide_eviction_requeues_young_pods(age, max_age):
    decision = decide_eviction("Failed", age, max_age)
    assert decision.action == Action.REQUEUE_AFTER
    assert decision.requeue_after == min(timedelta(minutes=1), max_age + timedelta(seconds=1))


@pytest.mark.parametrize("phase", ["Running", "Unknown", None])
def test_decide_eviction_skips_running_pods(phase):
    assert decide_eviction(phase, timedelta(days=7), timedelta(0)).action == Action.SKIP


def test_young_failed_pod_is_requeued_after_one_minute(reconciler, api):
    api.read_namespaced_pod.return_value = make_pod(phase="Failed", age=timedelta(minutes=20))

    result = reconciler.reconcile(KEY)

    assert result == ReconcileResult(requeue_after=timedelta(minutes=1))
    api.delete_namespaced_pod.assert_not_called()


def test_old_failed_pod_is_deleted(reconciler, api):
    api.read_namespaced_pod.return_value = make_pod(phase="Failed", age=timedelta(hours=2))

    result = reconciler.reconcile(KEY)

    assert result == ReconcileResult()
    api.read_namespaced_pod.assert_called_once_with(name="job-7", namespace="default")
    api.delete_namespaced_pod.assert_called_once_with(name="job-7", namespace="default")


def test_excluded_namespace_is_never_touched(reconciler, api, shared_config):
    shared_config.set_max_pod_age(timedelta(0))
    api.read_namespaced_pod.return_value = make_pod(
        name="job-x", namespace="kube-system", phase="Failed", age=timedelta(hours=2)
    )

    result = reconciler.reconcile(ObjectKey("kube-system", "job-x"))

    assert result == ReconcileResult()
    api.read_namespaced_pod.assert_not_called()
    api.delete_namespaced_pod.assert_not_called()


def test_custom_excluded_namespace(kube, api, shared_config):
    reconciler = PodReconciler(kube, shared_config, excluded_namespace="infra", clock=lambda: NOW)
    api.read_namespaced_pod.return_value = make_pod(namespace="infra")

    reconciler.reconcile(ObjectKey("infra", "job-7"))

    api.delete_namespaced_pod.assert_not_called()


def test_missing_pod_is_ignored(reconciler, api):
    api.read_namespaced_pod.side_effect = not_found()

    assert reconciler.reconcile(KEY) == ReconcileResult()
    api.delete_namespaced_pod.assert_not_called()


def test_get_error_is_raised(reconciler, api):
    api.read_namespaced_pod.side_effect = ApiException(status=500, reason="Internal Server Error")

    with pytest.raises(ApiException):
        reconciler.reconcile(KEY)


@pytest.mark.parametrize("phase", ["Running", "Unknown"])
def test_running_pod_is_ignored(reconciler, api, phase):
    api.read_namespaced_pod.return_value = make_pod(phase=phase, age=timedelta(days=30))

    assert reconciler.reconcile(KEY) == ReconcileResult()
    api.delete_namespaced_pod.assert_not_called()


def test_missing_creation_timestamp_is_an_error(reconciler, api):
    api.read_namespaced_pod.return_value = make_pod(phase="Pending", age=None)

    with pytest.raises(ReconcileError):
        reconciler.reconcile(KEY)
    api.delete_namespaced_pod.assert_not_called()


def test_naive_creation_timestamp_is_treated_as_utc(reconciler, api):
    created_at = datetime(2024, 6, 1, 10, 0, 0)
    api.read_namespaced_pod.return_value = make_pod(created_at=created_at)

    reconciler.reconcile(KEY)

    api.delete_namespaced_pod.assert_called_once()


def test_delete_not_found_is_success(reconciler, api):
    api.read_namespaced_pod.return_value = make_pod()
    api.delete_namespaced_pod.side_effect = not_found()

    assert reconciler.reconcile(KEY) == ReconcileResult()


def test_delete_error_is_raised(reconciler, api):
    api.read_namespaced_pod.return_value = make_pod()
    api.delete_namespaced_pod.side_effect = ApiException(status=503, reason="Service Unavailable")

    with pytest.raises(ReconcileError) as excinfo:
        reconciler.reconcile(KEY)
    assert isinstance(excinfo.value.__cause__, ApiException)


def test_delete_error_with_retry_delay_is_requeued(kube, api, shared_config):
    reconciler = PodReconciler(
        kube, shared_config, delete_retry_after=timedelta(minutes=1), clock=lambda: NOW
    )
    api.read_namespaced_pod.return_value = make_pod()
    api.delete_namespaced_pod.side_effect = ApiException(status=503, reason="Service Unavailable")

    assert reconciler.reconcile(KEY) == ReconcileResult(requeue_after=timedelta(minutes=1))


def test_dry_run_does_not_delete(kube, api, shared_config):
    reconciler = PodReconciler(kube, shared_config, dry_run=True, clock=lambda: NOW)
    api.read_namespaced_pod.return_value = make_pod()

    assert reconciler.reconcile(KEY) == ReconcileResult()
    api.delete_namespaced_pod.assert_not_called()


def test_config_change_applies_on_next_reconcile(reconciler, api, shared_config):
    api.read_namespaced_pod.return_value = make_pod(age=timedelta(minutes=20))

    assert reconciler.reconcile(KEY).requeue_after == timedelta(minutes=1)

    shared_config.set_max_pod_age(timedelta(minutes=10))
    assert reconciler.reconcile(KEY) == ReconcileResult()
    api.delete_namespaced_pod.assert_called_once()


def test_reconcile_twice_deletes_once(reconciler, api):
    api.read_namespaced_pod.side_effect = [make_pod(), not_found()]

    assert reconciler.reconcile(KEY) == ReconcileResult()
    assert reconciler.reconcile(KEY) == ReconcileResult()
    assert api.delete_namespaced_pod.call_count == 1


def test_reconcile_twice_without_change_gives_same_requeue(reconciler, api):
    api.read_namespaced_pod.return_value = make_pod(phase="Pending", age=timedelta(seconds=5))

    first = reconciler.reconcile(KEY)
    second = reconciler.reconcile(KEY)

    assert first == second == ReconcileResult(requeue_after=timedelta(minutes=1))
    api.delete_namespaced_pod.assert_not_called()
