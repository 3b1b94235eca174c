"""Tests for command line parsing."""

from run import parse_args


def test_defaults():
    args = parse_args([])

    assert args.config_map == "pod-reaper/pod-reaper-config"
    assert args.excluded_namespace == "kube-system"
    assert args.max_pod_age is None
    assert args.workers == 4
    assert args.delete_retry_seconds is None
    assert not args.dry_run
    assert not args.in_cluster


def test_overrides():
    args = parse_args([
        "--config-map", "ops/reaper",
        "--excluded-namespace", "infra",
        "--max-pod-age", "30m",
        "-w", "2",
        "--delete-retry-seconds", "60",
        "--dry-run",
        "--in-cluster",
        "-v",
    ])

    assert args.config_map == "ops/reaper"
    assert args.excluded_namespace == "infra"
    assert args.max_pod_age == "30m"
    assert args.workers == 2
    assert args.delete_retry_seconds == 60.0
    assert args.dry_run and args.in_cluster and args.verbose
