"""
Хранилище точек маршрутов
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from pydantic import ValidationError

from route_planner.exceptions import DuplicateMembership, IndexOutOfRange, NotFound
from route_planner.models.waypoint import IMMUTABLE_WAYPOINT_FIELDS, Waypoint, WaypointStatus
from route_planner.services.waypoint_helpers import resequence_waypoints

logger = logging.getLogger(__name__)


class WaypointStore:
    """
    Связь маршрутов и заказов с порядком следования

    Хранит для каждого маршрута список точек, где позиция в списке всегда
    совпадает с sequence. Все методы возвращают копии, изменять их безопасно.
    Хранилище работает только в памяти: загрузка и сохранение - на вызывающем коде.
    """

    def __init__(self, waypoints: Optional[Iterable[Waypoint]] = None):
        """
        Args:
            waypoints: Начальные данные (опционально), см. seed()
        """
        self._routes: Dict[str, List[Waypoint]] = {}
        if waypoints is not None:
            self.seed(waypoints)

    def seed(self, waypoints: Iterable[Waypoint]) -> None:
        """
        Заменить содержимое хранилища каноническим списком

        Args:
            waypoints: Точки любых маршрутов, в любом порядке

        Raises:
            DuplicateMembership: если пара (маршрут, заказ) встречается дважды
        """
        grouped: Dict[str, List[Waypoint]] = {}
        for waypoint in waypoints:
            route_waypoints = grouped.setdefault(waypoint.route_id, [])
            if any(w.order_id == waypoint.order_id for w in route_waypoints):
                raise DuplicateMembership(waypoint.route_id, waypoint.order_id)
            route_waypoints.append(waypoint)

        self._routes = {
            route_id: resequence_waypoints(route_waypoints)
            for route_id, route_waypoints in grouped.items()
        }
        logger.info(f"✅ Загружено {sum(len(w) for w in self._routes.values())} точек "
                    f"для {len(self._routes)} маршрутов")

    def reset(self) -> None:
        """Очистить хранилище"""
        self._routes.clear()

    def route_ids(self) -> List[str]:
        """ID известных маршрутов"""
        return list(self._routes.keys())

    def list_by_route(self, route_id: str) -> List[Waypoint]:
        """
        Точки маршрута по возрастанию sequence

        Args:
            route_id: ID маршрута

        Returns:
            Копии точек (пустой список для неизвестного маршрута)
        """
        return [w.model_copy(deep=True) for w in self._routes.get(route_id, [])]

    def list_routes_for_order(self, order_id: str) -> Set[str]:
        """Маршруты, в которые входит заказ"""
        return {
            route_id
            for route_id, waypoints in self._routes.items()
            if any(w.order_id == order_id for w in waypoints)
        }

    def get(self, route_id: str, order_id: str) -> Optional[Waypoint]:
        """Точка маршрута или None"""
        waypoint = self._find(route_id, order_id)
        return waypoint.model_copy(deep=True) if waypoint else None

    def add(self, route_id: str, order_id: str, at_index: Optional[int] = None) -> Waypoint:
        """
        Добавить заказ в маршрут

        Args:
            route_id: ID маршрута
            order_id: ID заказа
            at_index: Позиция вставки (ограничивается диапазоном [0, len]), по умолчанию в конец

        Returns:
            Созданная точка

        Raises:
            DuplicateMembership: если заказ уже есть в маршруте
        """
        waypoints = self._routes.setdefault(route_id, [])
        if any(w.order_id == order_id for w in waypoints):
            raise DuplicateMembership(route_id, order_id)

        if at_index is None:
            position = len(waypoints)
        else:
            position = max(0, min(at_index, len(waypoints)))

        waypoint = Waypoint(route_id=route_id, order_id=order_id, sequence=position)
        waypoints.insert(position, waypoint)
        self._renumber(waypoints)

        logger.info(f"✅ Заказ {order_id} добавлен в маршрут {route_id} на позицию {position}")
        return waypoint.model_copy(deep=True)

    def remove(self, route_id: str, order_id: str) -> None:
        """
        Удалить заказ из маршрута, оставшиеся точки перенумеровываются

        Raises:
            NotFound: если маршрута нет или заказ в него не входит
        """
        waypoints = self._routes.get(route_id)
        if waypoints is None:
            raise NotFound(f"Маршрут {route_id} не найден")

        index = next((i for i, w in enumerate(waypoints) if w.order_id == order_id), None)
        if index is None:
            raise NotFound(f"Заказ {order_id} не найден в маршруте {route_id}")

        del waypoints[index]
        self._renumber(waypoints)
        logger.info(f"🗑️ Заказ {order_id} удален из маршрута {route_id}")

    def reorder(self, route_id: str, from_index: int, to_index: int) -> List[Waypoint]:
        """
        Переместить точку на другую позицию

        Это перемещение, а не обмен: [A, B, C] с 0 на 2 дает [B, C, A].

        Args:
            route_id: ID маршрута
            from_index: Текущая позиция
            to_index: Новая позиция

        Returns:
            Точки маршрута в новом порядке

        Raises:
            NotFound: если маршрута нет
            IndexOutOfRange: если индекс вне [0, len - 1]
        """
        waypoints = self._routes.get(route_id)
        if waypoints is None:
            raise NotFound(f"Маршрут {route_id} не найден")

        length = len(waypoints)
        if not (0 <= from_index < length and 0 <= to_index < length):
            raise IndexOutOfRange(route_id, from_index, to_index, length)

        moved = waypoints.pop(from_index)
        waypoints.insert(to_index, moved)
        self._renumber(waypoints)

        logger.info(f"🔄 Маршрут {route_id}: заказ {moved.order_id} перемещен {from_index} -> {to_index}")
        return self.list_by_route(route_id)

    def update_status(
        self,
        route_id: str,
        order_id: str,
        status: WaypointStatus,
        delivered_at: Optional[datetime] = None
    ) -> Optional[Waypoint]:
        """
        Обновить статус точки

        Для статуса "delivered" выставляется delivered_at (переданное значение
        или текущее время), для остальных статусов delivered_at не меняется.

        Returns:
            Обновленная точка или None, если точка не найдена
        """
        waypoint = self._find(route_id, order_id)
        if waypoint is None:
            return None

        waypoint.status = status
        if status == "delivered":
            waypoint.delivered_at = delivered_at or datetime.utcnow()

        return waypoint.model_copy(deep=True)

    def update_partial(self, route_id: str, order_id: str, fields: Dict[str, Any]) -> Optional[Waypoint]:
        """
        Обновить произвольные поля точки

        route_id, order_id и sequence через этот метод не меняются и молча
        отбрасываются, как и неизвестные поля. Изменение применяется целиком:
        если хотя бы одно значение не проходит проверку, точка не меняется.

        Returns:
            Обновленная точка или None, если точка не найдена или изменение отклонено
        """
        waypoints = self._routes.get(route_id, [])
        index = next((i for i, w in enumerate(waypoints) if w.order_id == order_id), None)
        if index is None:
            return None

        changes: Dict[str, Any] = {}
        for name, value in fields.items():
            if name in IMMUTABLE_WAYPOINT_FIELDS:
                continue
            if name not in Waypoint.model_fields:
                logger.debug(f"Неизвестное поле точки маршрута пропущено: {name}")
                continue
            changes[name] = value

        try:
            updated = Waypoint.model_validate({**waypoints[index].model_dump(), **changes})
        except ValidationError as e:
            logger.warning(f"⚠️ Изменение точки {order_id} маршрута {route_id} отклонено: {e}")
            return None

        waypoints[index] = updated
        return updated.model_copy(deep=True)

    def _find(self, route_id: str, order_id: str) -> Optional[Waypoint]:
        for waypoint in self._routes.get(route_id, []):
            if waypoint.order_id == order_id:
                return waypoint
        return None

    @staticmethod
    def _renumber(waypoints: List[Waypoint]) -> None:
        # Позиция в списке и есть порядок маршрута
        for index, waypoint in enumerate(waypoints):
            waypoint.sequence = index
