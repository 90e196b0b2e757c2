"""
Tests for the in-memory service catalog.
"""

import pytest

from promsight.core.errors import ServiceNotFoundError
from promsight.discovery.catalog import InMemoryServiceCatalog


class TestInMemoryServiceCatalog:
    """Test catalog create, lookup and update."""

    @pytest.mark.asyncio
    async def test_create_and_lookup(self):
        catalog = InMemoryServiceCatalog()

        created = await catalog.create_service("api", "prod", {"namespace": "prod"})
        found = await catalog.get_service_by_name("api", "prod")

        assert found is not None
        assert found.id == created.id
        assert found.labels == {"namespace": "prod"}
        assert catalog.size() == 1

    @pytest.mark.asyncio
    async def test_lookup_is_scoped_by_namespace(self):
        catalog = InMemoryServiceCatalog()
        await catalog.create_service("api", "prod", {})

        assert await catalog.get_service_by_name("api", "staging") is None

    @pytest.mark.asyncio
    async def test_update_replaces_metric_list(self):
        catalog = InMemoryServiceCatalog()
        service = await catalog.create_service("api", "default", {})

        await catalog.update_service_metrics(service.id, ["a_total", "b_total"])
        await catalog.update_service_metrics(service.id, ["c_total"])

        found = await catalog.get_service_by_name("api", "default")
        assert found.metric_names == ["c_total"]
        assert found.updated_at >= found.created_at

    @pytest.mark.asyncio
    async def test_update_unknown_service(self):
        catalog = InMemoryServiceCatalog()

        with pytest.raises(ServiceNotFoundError):
            await catalog.update_service_metrics("missing", ["up"])
