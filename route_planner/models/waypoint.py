from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel

from route_planner.models.order import Order

WaypointStatus = Literal["pending", "in-transit", "delivered", "failed"]

# Поля, которые нельзя менять через частичное обновление
IMMUTABLE_WAYPOINT_FIELDS = frozenset({"route_id", "order_id", "sequence"})


class Waypoint(BaseModel):
    """
    Точка маршрута: положение заказа внутри конкретного маршрута.

    Связь маршрутов и заказов многие-ко-многим: один заказ может входить
    в несколько черновых маршрутов, но в каждый маршрут - не более одного раза.
    """
    route_id: str
    order_id: str
    sequence: int = 0  # Позиция в маршруте, с нуля
    status: WaypointStatus = "pending"
    delivered_at: Optional[datetime] = None
    notes: Optional[str] = None
    drive_time_estimate: Optional[float] = None  # минуты от предыдущей точки
    drive_time_actual: Optional[float] = None  # минуты от предыдущей точки
    arrival_time: Optional[datetime] = None
    departure_time: Optional[datetime] = None
    order: Optional[Order] = None  # Данные заказа для отображения, заполняются по запросу

    class Config:
        from_attributes = True
        validate_assignment = True
