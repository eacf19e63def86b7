"""
Интерфейс сервиса маршрутизации
Позволяет подменить провайдера (2ГИС, прямая линия, тестовый) без изменения менеджера отрезков
"""
from abc import ABC, abstractmethod
from typing import Protocol

from route_planner.models.segment import MapRoute, RouteData, Stop


class RoutingBackend(Protocol):
    """Протокол сервиса маршрутизации"""

    async def create_route_segment(self, from_stop: Stop, to_stop: Stop) -> RouteData:
        """
        Рассчитать маршрут между двумя точками

        Args:
            from_stop: Начальная точка
            to_stop: Конечная точка

        Returns:
            Линия, расстояние (м) и время (с)

        Raises:
            BackendFailure: если расчет не удался
        """
        ...

    def draw_route_segment(self, route_data: RouteData) -> MapRoute:
        """Нарисовать отрезок, вернуть дескриптор линии"""
        ...

    def update_route_segment(self, route: MapRoute, route_data: RouteData) -> None:
        """Перерисовать линию (геометрия и стиль)"""
        ...

    def remove_route_segment(self, route_id: str) -> None:
        """Убрать линию"""
        ...


class AbstractRoutingBackend(ABC):
    """Абстрактный базовый класс сервиса маршрутизации"""

    @abstractmethod
    async def create_route_segment(self, from_stop: Stop, to_stop: Stop) -> RouteData:
        pass

    @abstractmethod
    def draw_route_segment(self, route_data: RouteData) -> MapRoute:
        pass

    @abstractmethod
    def update_route_segment(self, route: MapRoute, route_data: RouteData) -> None:
        pass

    @abstractmethod
    def remove_route_segment(self, route_id: str) -> None:
        pass
