"""
Модели отрезков маршрута: стоимость проезда между двумя соседними точками
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel

from route_planner.models.order import Order

SegmentStatus = Literal["idle", "calculating", "calculated", "failed"]

# (lat, lon)
Point = Tuple[float, float]


class Stop(BaseModel):
    """Остановка маршрута: идентификатор заказа и его координаты"""
    id: str
    latitude: float
    longitude: float

    @property
    def point(self) -> Point:
        return (self.latitude, self.longitude)

    @classmethod
    def from_order(cls, order: Order) -> "Stop":
        if not order.has_location:
            raise ValueError(f"У заказа {order.id} нет координат")
        return cls(id=order.id, latitude=order.latitude, longitude=order.longitude)


class BoundingBox(BaseModel):
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    @classmethod
    def around(cls, *points: Point) -> "BoundingBox":
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        return cls(min_lat=min(lats), min_lng=min(lngs), max_lat=max(lats), max_lng=max(lngs))


class RouteData(BaseModel):
    """Результат расчета маршрута сервисом маршрутизации"""
    polyline: List[Point] = []
    distance: float = 0.0  # метры
    duration: float = 0.0  # секунды
    bounds: Optional[BoundingBox] = None
    status: Optional[Literal["calculated", "calculating", "failed"]] = None
    error: Optional[str] = None
    calculated_at: Optional[datetime] = None
    # Стиль для перерисовки (подсветка)
    color: Optional[str] = None
    weight: Optional[float] = None
    opacity: Optional[float] = None


@dataclass(frozen=True)
class RouteStyle:
    color: str
    weight: float
    opacity: float
    dash_array: Optional[str] = None


DEFAULT_ROUTE_STYLE = RouteStyle(color="#2563eb", weight=4, opacity=0.8)
FAILED_ROUTE_STYLE = RouteStyle(color="#ef4444", weight=3, opacity=0.6, dash_array="6 6")


@dataclass
class MapRoute:
    """Нарисованная линия отрезка (непрозрачный дескриптор слоя карты)"""
    id: str
    segment_id: str = ""
    style: RouteStyle = DEFAULT_ROUTE_STYLE


@dataclass(frozen=True)
class Unhighlighted:
    pass


@dataclass(frozen=True)
class Highlighted:
    original_style: RouteStyle


HighlightState = Union[Unhighlighted, Highlighted]


@dataclass
class RouteSegment:
    """
    Отрезок маршрута между двумя заказами.

    id детерминирован: "<from_id>-<to_id>", повторный upsert той же пары
    обновляет существующую запись.
    """
    id: str
    from_stop: Stop
    to_stop: Stop
    status: SegmentStatus = "idle"
    route_data: Optional[RouteData] = None
    map_route: Optional[MapRoute] = None
    highlight: HighlightState = field(default_factory=Unhighlighted)
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @staticmethod
    def make_id(from_stop: Stop, to_stop: Stop) -> str:
        return f"{from_stop.id}-{to_stop.id}"

    @property
    def distance(self) -> Optional[float]:
        return self.route_data.distance if self.route_data else None

    @property
    def duration(self) -> Optional[float]:
        return self.route_data.duration if self.route_data else None

    @property
    def geometry(self) -> List[Point]:
        """Линия отрезка; без данных от сервиса - прямая между точками"""
        if self.route_data and len(self.route_data.polyline) > 1:
            return list(self.route_data.polyline)
        return [self.from_stop.point, self.to_stop.point]

    @property
    def error(self) -> Optional[str]:
        if self.status != "failed" or not self.route_data:
            return None
        return self.route_data.error

    @property
    def is_highlighted(self) -> bool:
        return isinstance(self.highlight, Highlighted)

    @property
    def display_style(self) -> RouteStyle:
        if self.status == "failed":
            return FAILED_ROUTE_STYLE
        if self.map_route:
            return self.map_route.style
        return DEFAULT_ROUTE_STYLE
