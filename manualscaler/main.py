"""Run the manual scaler operator."""

import argparse
import sys

import kopf

from manualscaler.config import load_config
from manualscaler.controller_logger import ControllerLogger
from manualscaler.errors import ConfigError
from manualscaler.operator import ScalerOperator
from manualscaler.reconcile import ManualScalerReconciler
from manualscaler.store import KubernetesStore, load_kube_config


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="manualscaler", description=__doc__)
    parser.add_argument("--config", help="path to the YAML config file")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        sys.stderr.write(f"{e}\n")
        return 1

    logger = ControllerLogger("manualscaler", cfg.log_level, cfg.log_file, cfg.log_format).logger
    logger.info("Starting manual scaler operator")

    load_kube_config(cfg.in_cluster)
    store = KubernetesStore()
    reconciler = ManualScalerReconciler(store, cfg.reconcile)
    operator = ScalerOperator(reconciler, cfg.reconcile, workers=cfg.workers)

    registry = kopf.OperatorRegistry()
    operator.register(registry)
    kopf.run(
        registry=registry,
        standalone=True,
        clusterwide=cfg.namespace is None,
        namespaces=[cfg.namespace] if cfg.namespace else (),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
