from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Protocol

from pydantic import BaseModel, Field

from promsight.core.errors import ServiceNotFoundError


class Service(BaseModel):
    """A service as stored in the service catalog."""

    id: str = Field(..., description="Catalog identifier")
    name: str
    namespace: str
    labels: Dict[str, str] = Field(default_factory=dict)
    metric_names: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ServiceCatalog(Protocol):
    """Persistence contract consumed by the discovery engine. It never deletes."""

    async def get_service_by_name(self, name: str, namespace: str) -> Service | None:
        ...

    async def create_service(
        self,
        name: str,
        namespace: str,
        labels: dict[str, str],
    ) -> Service:
        ...

    async def update_service_metrics(self, service_id: str, metric_names: list[str]) -> None:
        ...


class InMemoryServiceCatalog:
    """Dictionary-backed catalog for local development and tests."""

    def __init__(self) -> None:
        self._services: dict[str, Service] = {}

    async def get_service_by_name(self, name: str, namespace: str) -> Service | None:
        for service in self._services.values():
            if service.name == name and service.namespace == namespace:
                return service
        return None

    async def create_service(
        self,
        name: str,
        namespace: str,
        labels: dict[str, str],
    ) -> Service:
        service = Service(
            id=str(uuid.uuid4()),
            name=name,
            namespace=namespace,
            labels=dict(labels),
        )
        self._services[service.id] = service
        return service

    async def update_service_metrics(self, service_id: str, metric_names: list[str]) -> None:
        service = self._services.get(service_id)
        if service is None:
            raise ServiceNotFoundError(
                f"No service found with id: {service_id}",
                {"service_id": service_id},
            )
        service.metric_names = list(metric_names)
        service.updated_at = datetime.now(timezone.utc)

    def list_services(self) -> list[Service]:
        return list(self._services.values())

    def size(self) -> int:
        return len(self._services)
