"""Controller configuration.

Settings come from an optional YAML file and can be overridden through
environment variables. Reconcile settings are handed to the reconciler at
construction time.
"""

import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from manualscaler.conditions import TYPE_SYNCED
from manualscaler.errors import ConfigError
from manualscaler.resources import KIND_DEPLOYMENT

DEFAULT_CONFIG_FILE = "/config.yaml"

ENV_CONFIG = "MANUALSCALER_CONFIG"
ENV_NAMESPACE = "MANUALSCALER_NAMESPACE"
ENV_WORKERS = "MANUALSCALER_WORKERS"
ENV_RETRY_DELAY = "MANUALSCALER_RETRY_DELAY"
ENV_LOG_LEVEL = "MANUALSCALER_LOG_LEVEL"

DEFAULT_LOG_FORMAT = "%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s"

# Condition messages.
ERR_LOCATE_WORKLOAD = "cannot find workload"
ERR_LOCATE_DEPLOYMENT = "cannot find deployment"
ERR_SCALE_DEPLOYMENT = "cannot scale deployment"
ERR_UPDATE_STATUS = "cannot apply status"


@dataclass
class ReconcileSettings:
    retry_delay: float = 30.0
    condition_type: str = TYPE_SYNCED
    deployment_kind: str = KIND_DEPLOYMENT
    optimistic_lock: bool = False
    err_locate_workload: str = ERR_LOCATE_WORKLOAD
    err_locate_deployment: str = ERR_LOCATE_DEPLOYMENT
    err_scale_deployment: str = ERR_SCALE_DEPLOYMENT
    err_update_status: str = ERR_UPDATE_STATUS


@dataclass
class ControllerConfig:
    namespace: str | None = None
    workers: int = 2
    in_cluster: bool = True
    log_level: str = "INFO"
    log_file: str | None = None
    log_format: str = DEFAULT_LOG_FORMAT
    reconcile: ReconcileSettings = field(default_factory=ReconcileSettings)


def _read_yaml(configfile: str) -> dict[str, Any]:
    if not os.path.exists(configfile):
        return {}
    with open(configfile) as file:
        try:
            data = yaml.safe_load(file)
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse config file {configfile}: {e}") from e
    if data is None:
        raise ConfigError(f"config file {configfile} was empty")
    if not isinstance(data, dict):
        raise ConfigError(f"config file {configfile} must contain a mapping")
    return data


def _as_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def _as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {value!r}") from e


def load_config(configfile: str | None = None, environ: dict[str, str] | None = None) -> ControllerConfig:
    """Build a ControllerConfig from `configfile` and the environment.

    A missing file means defaults. An unreadable one raises ConfigError.
    """
    env = os.environ if environ is None else environ
    configfile = configfile or env.get(ENV_CONFIG) or DEFAULT_CONFIG_FILE
    data = _read_yaml(configfile)

    settings = ReconcileSettings(
        retry_delay=_as_float(data.get("retryDelaySeconds", 30), "retryDelaySeconds"),
        condition_type=data.get("conditionType", TYPE_SYNCED),
        deployment_kind=data.get("deploymentKind", KIND_DEPLOYMENT),
        optimistic_lock=bool(data.get("optimisticLock", False)),
    )
    cfg = ControllerConfig(
        namespace=data.get("namespace") or None,
        workers=_as_int(data.get("workers", 2), "workers"),
        in_cluster=bool(data.get("inCluster", True)),
        log_level=str(data.get("logLevel", "INFO")).upper(),
        log_file=data.get("logFile"),
        log_format=data.get("logFormat", DEFAULT_LOG_FORMAT),
        reconcile=settings,
    )

    if env.get(ENV_NAMESPACE):
        cfg.namespace = env[ENV_NAMESPACE]
    if env.get(ENV_WORKERS):
        cfg.workers = _as_int(env[ENV_WORKERS], ENV_WORKERS)
    if env.get(ENV_RETRY_DELAY):
        settings.retry_delay = _as_float(env[ENV_RETRY_DELAY], ENV_RETRY_DELAY)
    if env.get(ENV_LOG_LEVEL):
        cfg.log_level = env[ENV_LOG_LEVEL].upper()

    if cfg.workers < 1:
        raise ConfigError(f"workers must be positive, got {cfg.workers}")
    if settings.retry_delay <= 0:
        raise ConfigError(f"retry delay must be positive, got {settings.retry_delay}")
    return cfg
