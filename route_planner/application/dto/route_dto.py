"""
Data Transfer Objects для маршрутов
"""
from typing import List, Optional
from pydantic import BaseModel

from route_planner.models.segment import RouteSegment, SegmentStatus
from route_planner.models.waypoint import Waypoint


class RouteSegmentDTO(BaseModel):
    """DTO для отрезка маршрута"""
    id: str
    from_order_id: str
    to_order_id: str
    status: SegmentStatus
    distance: Optional[float] = None  # метры
    duration: Optional[float] = None  # секунды
    error: Optional[str] = None
    highlighted: bool = False

    @classmethod
    def from_segment(cls, segment: RouteSegment) -> "RouteSegmentDTO":
        return cls(
            id=segment.id,
            from_order_id=segment.from_stop.id,
            to_order_id=segment.to_stop.id,
            status=segment.status,
            distance=segment.distance,
            duration=segment.duration,
            error=segment.error,
            highlighted=segment.is_highlighted,
        )


class RouteSummaryDTO(BaseModel):
    """DTO для сводки по отрезкам маршрута"""
    route_id: str
    segments: List[RouteSegmentDTO] = []
    total_distance: float = 0.0  # метры, только рассчитанные отрезки
    total_duration: float = 0.0  # секунды, только рассчитанные отрезки
    calculating: int = 0
    failed: int = 0


class RouteMutationResult(BaseModel):
    """DTO для результата изменения маршрута"""
    success: bool
    route_id: str
    waypoints: List[Waypoint] = []
    error_message: Optional[str] = None
