"""KubeRev: immutable, numbered revision snapshots of ConfigMaps and Secrets."""

__version__ = "0.1.0"
