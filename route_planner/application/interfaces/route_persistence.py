"""
Интерфейс сервиса хранения маршрутов и заказов (внешний HTTP API)
"""
from typing import Any, Dict, List, Protocol


class RoutePersistence(Protocol):
    """Протокол сервиса хранения; любая ошибка запроса - исключение"""

    async def add_waypoint(self, route_id: str, order_id: str, sequence: int) -> None:
        ...

    async def remove_waypoint(self, route_id: str, order_id: str) -> None:
        ...

    async def reorder_waypoints(self, route_id: str, order_ids: List[str]) -> None:
        """Сохранить новый порядок заказов маршрута"""
        ...

    async def update_order(self, order_id: str, fields: Dict[str, Any]) -> None:
        ...
