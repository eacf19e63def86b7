"""
Общие фикстуры для всех тестов
"""
import asyncio
import pytest
from datetime import datetime
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Импортируем модели для создания таблиц в тестовой БД
from route_planner.database.connection import Base
from route_planner.models.ledger import OptimisticLedgerDB  # noqa: F401
from route_planner.models.order import Order
from route_planner.models.segment import RouteData, BoundingBox, Stop
from route_planner.models.waypoint import Waypoint
from route_planner.repositories.ledger_repository import InMemoryLedgerStorage
from route_planner.repositories.waypoint_store import WaypointStore
from route_planner.services.optimistic_ledger import OptimisticLedger
from route_planner.services.routing_backends import BaseRoutingBackend


class FakeRoutingBackend(BaseRoutingBackend):
    """
    Сервис маршрутизации для тестов

    Считает вызовы и одновременные запросы; ответ можно придержать
    через gate (asyncio.Event) или заменить ошибкой через failures.
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls = []
        self.failures = {}
        self.gate = None
        self.active = 0
        self.max_active = 0

    async def create_route_segment(self, from_stop: Stop, to_stop: Stop) -> RouteData:
        segment_id = f"{from_stop.id}-{to_stop.id}"
        self.calls.append(segment_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)
            error = self.failures.get(segment_id)
            if error is not None:
                raise error
            return RouteData(
                polyline=[from_stop.point, to_stop.point],
                distance=1000.0,
                duration=120.0,
                bounds=BoundingBox.around(from_stop.point, to_stop.point),
                status="calculated",
            )
        finally:
            self.active -= 1


@pytest.fixture(scope="function")
def test_db_engine():
    """
    Создает тестовую БД в памяти для каждого теста
    """
    engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_db_engine):
    """
    Создает новую сессию БД для каждого теста
    После теста делает rollback
    """
    SessionLocal = sessionmaker(bind=test_db_engine)
    session = SessionLocal()

    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def mock_db_session():
    """
    Мок сессии БД для изолированных тестов
    """
    session = MagicMock(spec=Session)
    return session


@pytest.fixture
def freeze_time():
    """
    Фиксирует текущее время для тестов
    """
    from freezegun import freeze_time as _freeze_time
    frozen_time = datetime(2025, 12, 15, 9, 0, 0)
    with _freeze_time(frozen_time):
        yield frozen_time


@pytest.fixture
def fake_backend():
    """Сервис маршрутизации без сети"""
    return FakeRoutingBackend()


@pytest.fixture
def sample_orders():
    """
    Заказы с координатами в центре Москвы
    """
    return [
        Order(id="O1", customer_name="Иван Иванов", address="Москва, Тверская 1",
              latitude=55.7580, longitude=37.6130),
        Order(id="O2", customer_name="Мария Петрова", address="Москва, Арбат 10",
              latitude=55.7522, longitude=37.5989),
        Order(id="O3", customer_name="Петр Сидоров", address="Москва, Покровка 5",
              latitude=55.7590, longitude=37.6450),
        Order(id="O4", customer_name="Анна Смирнова", address="Москва, Мясницкая 20",
              latitude=55.7630, longitude=37.6360),
    ]


@pytest.fixture
def sample_stops(sample_orders):
    """Остановки по заказам"""
    return [Stop.from_order(order) for order in sample_orders]


@pytest.fixture
def sample_waypoints():
    """
    Маршрут R1 из трех заказов
    """
    return [
        Waypoint(route_id="R1", order_id="O1", sequence=0),
        Waypoint(route_id="R1", order_id="O2", sequence=1),
        Waypoint(route_id="R1", order_id="O3", sequence=2),
    ]


@pytest.fixture
def waypoint_store(sample_waypoints):
    """Хранилище с маршрутом R1"""
    return WaypointStore(sample_waypoints)


@pytest.fixture
def ledger():
    """Журнал в памяти"""
    return OptimisticLedger(InMemoryLedgerStorage())
