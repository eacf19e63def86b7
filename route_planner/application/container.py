"""
Dependency Injection Container для сервисов планирования маршрутов
"""
import logging

from dependency_injector import containers, providers

from route_planner.config import settings
from route_planner.repositories.ledger_repository import InMemoryLedgerStorage, LedgerRepository
from route_planner.repositories.waypoint_store import WaypointStore
from route_planner.services.optimistic_ledger import OptimisticLedger
from route_planner.services.route_segment_manager import RouteSegmentManager
from route_planner.services.routing_backends import StraightLineRoutingBackend
from route_planner.services.two_gis_routing import TwoGisRoutingBackend
from route_planner.application.services.route_planning_service import RoutePlanningService

logger = logging.getLogger(__name__)


def create_routing_backend():
    """2ГИС, если задан ключ API, иначе расчет по прямой"""
    if settings.two_gis_api_key:
        return TwoGisRoutingBackend()
    logger.warning("⚠️ Ключ 2GIS API не задан, отрезки считаются по прямой")
    return StraightLineRoutingBackend()


def create_ledger_storage():
    """Хранилище журнала по настройке ledger_storage"""
    if settings.ledger_storage == "sql":
        from route_planner.database.connection import init_db
        init_db()
        return LedgerRepository()
    return InMemoryLedgerStorage()


class ApplicationContainer(containers.DeclarativeContainer):
    """DI контейнер для сервисов и хранилищ"""

    # Singleton - один экземпляр на все приложение
    waypoint_store = providers.Singleton(WaypointStore)
    routing_backend = providers.Singleton(create_routing_backend)
    ledger_storage = providers.Singleton(create_ledger_storage)
    ledger = providers.Singleton(OptimisticLedger, storage=ledger_storage)

    # Сервис хранения на сервере подключает приложение:
    # container.persistence.override(providers.Object(client))
    persistence = providers.Dependency()

    # Factory - у каждой карты свой менеджер отрезков
    segment_manager = providers.Factory(
        RouteSegmentManager,
        backend=routing_backend,
        backend_timeout=settings.routing_timeout_seconds or None,
    )

    route_planning_service = providers.Factory(
        RoutePlanningService,
        waypoint_store=waypoint_store,
        segment_manager=segment_manager,
        ledger=ledger,
        persistence=persistence,
    )


# Глобальный контейнер
container: ApplicationContainer = None


def init_container() -> ApplicationContainer:
    """Инициализация контейнера"""
    global container
    container = ApplicationContainer()
    return container


def get_container() -> ApplicationContainer:
    """Получить глобальный контейнер"""
    global container
    if container is None:
        container = init_container()
    return container
