#!/usr/bin/env python3
"""
Pod Reaper - Entry Point

A Kubernetes controller that deletes pods which have stayed in a non-running
phase (Pending, Succeeded, Failed) for longer than a maximum age. The maximum
age is read from a ConfigMap and can be changed at runtime.

Usage:
    python run.py [--config-map NAMESPACE/NAME] [--dry-run] [--in-cluster]
"""

import argparse
import logging
import sys
from datetime import timedelta

from kubernetes import config

from pod_reaper.config import (
    DEFAULT_CONFIG_MAP,
    DEFAULT_MAX_POD_AGE,
    DEFAULT_POD_WORKERS,
    EXCLUDED_NAMESPACE,
)
from pod_reaper.controller import PodReaperController
from pod_reaper.shared_config import PodReaperConfig
from pod_reaper.utils import DurationError, parse_duration, parse_object_key

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Pod Reaper - Delete pods stuck in a non-running phase"
    )
    parser.add_argument(
        "--config-map",
        default=DEFAULT_CONFIG_MAP,
        help=f"ConfigMap holding the maxPodAge setting (default: {DEFAULT_CONFIG_MAP})"
    )
    parser.add_argument(
        "--excluded-namespace",
        default=EXCLUDED_NAMESPACE,
        help=f"Namespace whose pods are never deleted (default: {EXCLUDED_NAMESPACE})"
    )
    parser.add_argument(
        "--max-pod-age",
        default=None,
        help="Maximum pod age used until the ConfigMap is read (default: 1h)"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=DEFAULT_POD_WORKERS,
        help=f"Number of pod worker threads (default: {DEFAULT_POD_WORKERS})"
    )
    parser.add_argument(
        "--delete-retry-seconds",
        type=float,
        default=None,
        help="Requeue a pod after this many seconds when deleting it fails "
             "(default: retry with the standard error delay)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (no pods deleted)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging"
    )
    return parser.parse_args(argv)


def main():
    """Main entry point."""
    args = parse_args()

    # Set log level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config_map_key = parse_object_key(args.config_map)
        max_pod_age = DEFAULT_MAX_POD_AGE
        if args.max_pod_age is not None:
            max_pod_age = parse_duration(args.max_pod_age)
            if max_pod_age < timedelta(0):
                raise DurationError(f"negative duration {args.max_pod_age!r}")
    except ValueError as e:
        logger.error(f"Invalid argument: {e}")
        sys.exit(2)

    if args.workers < 1:
        logger.error("--workers must be at least 1")
        sys.exit(2)

    delete_retry_after = None
    if args.delete_retry_seconds is not None:
        delete_retry_after = timedelta(seconds=args.delete_retry_seconds)

    # Load Kubernetes configuration
    try:
        if args.in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster configuration")
        else:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")
    except Exception as e:
        logger.error(f"Failed to load Kubernetes config: {e}")
        sys.exit(1)

    # Create and run controller
    controller = PodReaperController(
        config_map_key=config_map_key,
        config=PodReaperConfig(max_pod_age),
        excluded_namespace=args.excluded_namespace,
        workers=args.workers,
        dry_run=args.dry_run,
        delete_retry_after=delete_retry_after
    )

    try:
        controller.run()
    except KeyboardInterrupt:
        controller.stop()
        logger.info("Controller stopped")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Controller error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
