from typing import Optional
from pydantic import BaseModel


class Order(BaseModel):
    """
    Снимок заказа для отображения и расчета отрезков.

    Источник истины - сервис заказов; здесь только поля, нужные маршрутам.
    """
    id: str
    customer_name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: str = "pending"
    route_id: Optional[str] = None  # Маршрут, к которому заказ привязан (по данным сервиса)
    comment: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
