"""Object-store interface consumed by the revision logic."""

from __future__ import annotations

from abc import ABC, abstractmethod

from kuberev.models.revision import ResourceKind, StoredObject


class ObjectStore(ABC):
    """Namespaced ConfigMap and Secret access.

    Implementations raise NotFoundError for missing objects,
    AlreadyExistsError when a create collides with an existing name, and
    StoreError for everything else.
    """

    @abstractmethod
    async def get_config_map(self, namespace: str, name: str) -> StoredObject: ...

    @abstractmethod
    async def list_config_maps(self, namespace: str) -> list[StoredObject]: ...

    @abstractmethod
    async def create_config_map(self, obj: StoredObject) -> StoredObject: ...

    @abstractmethod
    async def get_secret(self, namespace: str, name: str) -> StoredObject: ...

    @abstractmethod
    async def create_secret(self, obj: StoredObject) -> StoredObject: ...

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> StoredObject:
        if kind is ResourceKind.CONFIG_MAP:
            return await self.get_config_map(namespace, name)
        return await self.get_secret(namespace, name)

    async def create(self, obj: StoredObject) -> StoredObject:
        if obj.kind is ResourceKind.CONFIG_MAP:
            return await self.create_config_map(obj)
        return await self.create_secret(obj)
