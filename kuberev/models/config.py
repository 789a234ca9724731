"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from kuberev.models.revision import RevisionResource


@dataclass
class ControllerConfig:
    """Revision controller configuration.

    ``config_maps[0]`` by convention names the primary payload consumed by
    downstream rollout logic; the controller itself never interprets it.
    """

    target_namespace: str = ""
    config_maps: list[RevisionResource] = field(default_factory=list)
    secrets: list[RevisionResource] = field(default_factory=list)
    workers: int = 1
    backoff_base_seconds: float = 0.005
    backoff_max_seconds: float = 1000.0


@dataclass
class OperatorResourceConfig:
    """Coordinates of the custom resource holding the authoritative revision state.

    An empty ``namespace`` means the resource is cluster-scoped.
    """

    group: str = "operator.openshift.io"
    version: str = "v1"
    plural: str = "kubeapiservers"
    kind: str = "KubeAPIServer"
    name: str = "cluster"
    namespace: str = ""

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


@dataclass
class EventsConfig:
    """Event sink configuration."""

    kube_enabled: bool = True
    webhook_secret_ref: str = ""


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"


@dataclass
class KubeRevConfig:
    """Top-level KubeRev configuration."""

    controller: ControllerConfig = field(default_factory=ControllerConfig)
    operator: OperatorResourceConfig = field(default_factory=OperatorResourceConfig)
    events: EventsConfig = field(default_factory=EventsConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)
