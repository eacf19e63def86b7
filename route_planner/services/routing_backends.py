"""
Базовые реализации сервиса маршрутизации
"""
import logging
import uuid
from datetime import datetime
from typing import Dict

from geopy.distance import geodesic

from route_planner.application.interfaces.routing_backend import AbstractRoutingBackend
from route_planner.models.segment import (
    DEFAULT_ROUTE_STYLE, BoundingBox, MapRoute, RouteData, RouteStyle, Stop
)

logger = logging.getLogger(__name__)

# Средняя скорость в городе: 30 км/ч = 8.333 м/с
AVERAGE_DRIVING_SPEED_MPS = 8.333


class BaseRoutingBackend(AbstractRoutingBackend):
    """
    Сервис маршрутизации без карты

    Нарисованные линии хранятся в реестре routes (как слои на карте);
    отрисовкой занимается внешний слой представления.
    """

    def __init__(self, default_style: RouteStyle = DEFAULT_ROUTE_STYLE):
        self.default_style = default_style
        self.routes: Dict[str, MapRoute] = {}
        self.route_data: Dict[str, RouteData] = {}

    def draw_route_segment(self, route_data: RouteData) -> MapRoute:
        route = MapRoute(id=f"route-{uuid.uuid4().hex[:12]}", style=self.default_style)
        self.routes[route.id] = route
        self.route_data[route.id] = route_data
        return route

    def update_route_segment(self, route: MapRoute, route_data: RouteData) -> None:
        if route.id not in self.routes:
            logger.debug(f"Линия {route.id} не найдена, обновление пропущено")
            return
        style = route.style
        self.routes[route.id] = MapRoute(
            id=route.id,
            segment_id=route.segment_id,
            style=RouteStyle(
                color=route_data.color or style.color,
                weight=route_data.weight or style.weight,
                opacity=route_data.opacity or style.opacity,
                dash_array=style.dash_array,
            ),
        )
        self.route_data[route.id] = route_data

    def remove_route_segment(self, route_id: str) -> None:
        self.routes.pop(route_id, None)
        self.route_data.pop(route_id, None)


class StraightLineRoutingBackend(BaseRoutingBackend):
    """Расчет по прямой: геодезическое расстояние и средняя скорость"""

    def __init__(self, speed_mps: float = AVERAGE_DRIVING_SPEED_MPS, **kwargs):
        super().__init__(**kwargs)
        self.speed_mps = speed_mps

    async def create_route_segment(self, from_stop: Stop, to_stop: Stop) -> RouteData:
        distance = geodesic(from_stop.point, to_stop.point).meters
        return RouteData(
            polyline=[from_stop.point, to_stop.point],
            distance=distance,
            duration=distance / self.speed_mps,
            bounds=BoundingBox.around(from_stop.point, to_stop.point),
            status="calculated",
            calculated_at=datetime.utcnow(),
        )
