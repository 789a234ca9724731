"""Configuration loading from environment variables."""

from __future__ import annotations

import os
import re

from kuberev.models.config import (
    APIConfig,
    ControllerConfig,
    EventsConfig,
    KubeRevConfig,
    LogConfig,
    OperatorResourceConfig,
)
from kuberev.models.revision import RevisionResource

_DNS_SUBDOMAIN = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")
_OPTIONAL_SUFFIX = ":optional"


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"KUBEREV_{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    return float(_env(key, str(default)))


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    valid = {"json", "console"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log format: {value}. Must be one of {valid}")
    return value.lower()


def _validate_name(value: str, what: str) -> str:
    if not _DNS_SUBDOMAIN.match(value) or len(value) > 253:
        raise ValueError(f"Invalid {what}: {value!r}")
    return value


def _parse_resources(value: str) -> list[RevisionResource]:
    """Parse ``name[,name:optional,...]`` into tracked resource descriptors.

    Order is preserved; duplicates are rejected.
    """
    resources: list[RevisionResource] = []
    seen: set[str] = set()
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        optional = part.endswith(_OPTIONAL_SUFFIX)
        name = part[: -len(_OPTIONAL_SUFFIX)] if optional else part
        _validate_name(name, "resource name")
        if name in seen:
            raise ValueError(f"Duplicate tracked resource: {name}")
        seen.add(name)
        resources.append(RevisionResource(name=name, optional=optional))
    return resources


def load_config() -> KubeRevConfig:
    """Load configuration from KUBEREV_* environment variables."""
    target_namespace = _env("TARGET_NAMESPACE", "")
    if not target_namespace:
        raise ValueError("KUBEREV_TARGET_NAMESPACE must be set")
    operator_namespace = _env("OPERATOR_NAMESPACE", "")
    if operator_namespace:
        _validate_name(operator_namespace, "operator namespace")

    backoff_base = _env_float("BACKOFF_BASE_SECONDS", 0.005)
    backoff_max = _env_float("BACKOFF_MAX_SECONDS", 1000.0)
    if backoff_base <= 0 or backoff_max < backoff_base:
        raise ValueError(f"Invalid backoff bounds: base={backoff_base} max={backoff_max}")

    return KubeRevConfig(
        controller=ControllerConfig(
            target_namespace=_validate_name(target_namespace, "target namespace"),
            config_maps=_parse_resources(_env("CONFIGMAPS", "")),
            secrets=_parse_resources(_env("SECRETS", "")),
            workers=_env_int("WORKERS", 1, min_val=1),
            backoff_base_seconds=backoff_base,
            backoff_max_seconds=backoff_max,
        ),
        operator=OperatorResourceConfig(
            group=_env("OPERATOR_GROUP", "operator.openshift.io"),
            version=_env("OPERATOR_VERSION", "v1"),
            plural=_env("OPERATOR_PLURAL", "kubeapiservers"),
            kind=_env("OPERATOR_KIND", "KubeAPIServer"),
            name=_validate_name(_env("OPERATOR_NAME", "cluster"), "operator resource name"),
            namespace=operator_namespace,
        ),
        events=EventsConfig(
            kube_enabled=_env_bool("EVENTS_KUBE_ENABLED", True),
            webhook_secret_ref=_env("EVENTS_WEBHOOK_SECRET_REF", ""),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )
