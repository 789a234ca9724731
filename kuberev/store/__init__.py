"""Object-store and status-store access for KubeRev.

Submodules:
    base    -- ObjectStore ABC for namespaced ConfigMaps and Secrets.
    status  -- OperatorStatusClient ABC and condition helpers.
    errors  -- NotFoundError / AlreadyExistsError / ConflictError / StoreError.
    kube    -- kubernetes-asyncio implementations of both interfaces.
"""

from kuberev.store.base import ObjectStore
from kuberev.store.errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from kuberev.store.status import OperatorStatusClient, set_condition, update_condition_fn

__all__ = [
    "AlreadyExistsError",
    "ConflictError",
    "NotFoundError",
    "ObjectStore",
    "OperatorStatusClient",
    "StoreError",
    "set_condition",
    "update_condition_fn",
]
