"""
Unit-тесты для DI контейнера
"""
import pytest
from unittest.mock import AsyncMock

from dependency_injector import providers

from route_planner.application.container import ApplicationContainer
from route_planner.application.services.route_planning_service import RoutePlanningService
from route_planner.config import settings
from route_planner.repositories.ledger_repository import InMemoryLedgerStorage
from route_planner.services.routing_backends import StraightLineRoutingBackend


@pytest.fixture
def container(monkeypatch):
    monkeypatch.setattr(settings, "two_gis_api_key", None)
    monkeypatch.setattr(settings, "ledger_storage", "memory")
    container = ApplicationContainer()
    container.persistence.override(providers.Object(AsyncMock()))
    yield container
    container.persistence.reset_override()


@pytest.mark.unit
class TestApplicationContainer:
    """Тесты сборки сервисов"""

    def test_defaults_without_api_key(self, container):
        assert isinstance(container.routing_backend(), StraightLineRoutingBackend)
        assert isinstance(container.ledger_storage(), InMemoryLedgerStorage)

    def test_singletons_are_shared(self, container):
        first = container.route_planning_service()
        second = container.route_planning_service()

        assert isinstance(first, RoutePlanningService)
        assert first.waypoint_store is second.waypoint_store
        assert first.ledger is second.ledger
        # У каждого сервиса свой менеджер отрезков
        assert first.segment_manager is not second.segment_manager
        assert first.segment_manager.backend is second.segment_manager.backend
