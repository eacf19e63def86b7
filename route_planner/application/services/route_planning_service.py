"""
Сервис планирования маршрута
Применяет изменения маршрута оптимистично и согласует их с сервером
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from route_planner.application.dto.route_dto import (
    RouteMutationResult, RouteSegmentDTO, RouteSummaryDTO
)
from route_planner.application.interfaces.route_persistence import RoutePersistence
from route_planner.exceptions import RoutePlannerError
from route_planner.models.order import Order
from route_planner.models.segment import RouteSegment, Stop
from route_planner.repositories.waypoint_store import WaypointStore
from route_planner.services.optimistic_ledger import OptimisticLedger
from route_planner.services.route_segment_manager import RouteSegmentManager
from route_planner.services.waypoint_helpers import get_orders_in_sequence, order_ids_in_sequence

logger = logging.getLogger(__name__)


class RoutePlanningService:
    """
    Сервис планирования маршрута

    Каждое изменение сначала применяется к локальному хранилищу и
    записывается в журнал, затем отправляется на сервер. Если сервер
    вернул ошибку, локальное изменение отменяется, а запись журнала
    помечается как failed.
    """

    def __init__(
        self,
        waypoint_store: WaypointStore,
        segment_manager: RouteSegmentManager,
        ledger: OptimisticLedger,
        persistence: RoutePersistence
    ):
        """
        Args:
            waypoint_store: Хранилище точек маршрутов
            segment_manager: Менеджер отрезков карты
            ledger: Журнал оптимистичных изменений
            persistence: Сервис хранения маршрутов на сервере
        """
        self.waypoint_store = waypoint_store
        self.segment_manager = segment_manager
        self.ledger = ledger
        self.persistence = persistence

    async def add_order(
        self,
        route_id: str,
        order_id: str,
        at_index: Optional[int] = None
    ) -> RouteMutationResult:
        """
        Добавить заказ в маршрут

        Args:
            route_id: ID маршрута
            order_id: ID заказа
            at_index: Позиция вставки (по умолчанию в конец)

        Returns:
            Результат изменения с актуальными точками маршрута
        """
        try:
            waypoint = self.waypoint_store.add(route_id, order_id, at_index)
        except RoutePlannerError as e:
            return self._failure(route_id, str(e))

        self.ledger.record_assignment(route_id, order_id, "add")
        try:
            await self.persistence.add_waypoint(route_id, order_id, waypoint.sequence)
        except Exception as e:
            logger.error(f"❌ Сервер не принял добавление {order_id} в маршрут {route_id}: {e}")
            self._undo_add(route_id, order_id)
            self.ledger.mark_assignment_failed(route_id, order_id)
            return self._failure(route_id, f"Не удалось сохранить маршрут: {e}")

        self.ledger.mark_assignment_completed(route_id, order_id)
        return self._success(route_id)

    async def remove_order(self, route_id: str, order_id: str) -> RouteMutationResult:
        """Удалить заказ из маршрута"""
        previous = self.waypoint_store.get(route_id, order_id)
        try:
            self.waypoint_store.remove(route_id, order_id)
        except RoutePlannerError as e:
            return self._failure(route_id, str(e))

        self.ledger.record_assignment(route_id, order_id, "remove")
        try:
            await self.persistence.remove_waypoint(route_id, order_id)
        except Exception as e:
            logger.error(f"❌ Сервер не принял удаление {order_id} из маршрута {route_id}: {e}")
            self._undo_remove(previous)
            self.ledger.mark_assignment_failed(route_id, order_id)
            return self._failure(route_id, f"Не удалось сохранить маршрут: {e}")

        self.ledger.mark_assignment_completed(route_id, order_id)
        return self._success(route_id)

    async def reorder(self, route_id: str, from_index: int, to_index: int) -> RouteMutationResult:
        """
        Переместить точку маршрута

        Args:
            route_id: ID маршрута
            from_index: Текущая позиция
            to_index: Новая позиция
        """
        try:
            waypoints = self.waypoint_store.reorder(route_id, from_index, to_index)
        except RoutePlannerError as e:
            return self._failure(route_id, str(e))

        moved_order_id = waypoints[to_index].order_id
        try:
            await self.persistence.reorder_waypoints(route_id, order_ids_in_sequence(waypoints))
        except Exception as e:
            logger.error(f"❌ Сервер не принял новый порядок маршрута {route_id}: {e}")
            self._undo_reorder(route_id, moved_order_id, from_index)
            return self._failure(route_id, f"Не удалось сохранить порядок: {e}")

        return self._success(route_id)

    async def update_order(self, order_id: str, fields: Dict[str, Any]) -> bool:
        """
        Отправить изменение полей заказа

        Поля заказа хранит вызывающий код, поэтому при ошибке сервиса
        изменение только помечается в журнале как failed.

        Returns:
            True, если сервер принял изменение
        """
        self.ledger.record_order_field(order_id, fields)
        try:
            await self.persistence.update_order(order_id, dict(fields))
        except Exception as e:
            logger.error(f"❌ Сервер не принял изменение заказа {order_id}: {e}")
            self.ledger.mark_order_field_failed(order_id)
            return False

        self.ledger.mark_order_field_completed(order_id)
        return True

    def refresh_segments(self, route_id: str, orders: Iterable[Order]) -> List[RouteSegment]:
        """
        Пересобрать отрезки карты по текущему порядку маршрута

        Заказы без координат пропускаются: отрезок строится между
        соседними заказами, у которых координаты есть.

        Args:
            route_id: ID маршрута
            orders: Известные заказы (могут включать заказы других маршрутов)

        Returns:
            Отрезки маршрута по порядку
        """
        ordered = get_orders_in_sequence(self.waypoint_store.list_by_route(route_id), orders)
        stops = [Stop.from_order(order) for order in ordered if order.has_location]

        skipped = len(ordered) - len(stops)
        if skipped:
            logger.warning(f"⚠️ Маршрут {route_id}: заказов без координат: {skipped}")

        return self.segment_manager.sync_route(stops)

    def summarize_segments(self, route_id: str, segments: Iterable[RouteSegment]) -> RouteSummaryDTO:
        """Сводка по отрезкам маршрута для отображения"""
        summary = RouteSummaryDTO(route_id=route_id)
        for segment in segments:
            summary.segments.append(RouteSegmentDTO.from_segment(segment))
            if segment.status == "calculated":
                summary.total_distance += segment.distance or 0.0
                summary.total_duration += segment.duration or 0.0
            elif segment.status == "failed":
                summary.failed += 1
            elif self.segment_manager.is_calculating(segment.id):
                summary.calculating += 1
        return summary

    # ------------------------------------------------------------------
    # Отмена локальных изменений
    # ------------------------------------------------------------------

    def _undo_add(self, route_id: str, order_id: str) -> None:
        if self.waypoint_store.get(route_id, order_id) is not None:
            self.waypoint_store.remove(route_id, order_id)

    def _undo_remove(self, previous) -> None:
        if previous is None:
            return
        if self.waypoint_store.get(previous.route_id, previous.order_id) is not None:
            return
        self.waypoint_store.add(previous.route_id, previous.order_id, previous.sequence)
        self.waypoint_store.update_partial(
            previous.route_id,
            previous.order_id,
            previous.model_dump(exclude={'order'}),
        )

    def _undo_reorder(self, route_id: str, order_id: str, original_index: int) -> None:
        # Пока шел запрос, маршрут мог измениться: возвращаем точку по order_id
        order_ids = order_ids_in_sequence(self.waypoint_store.list_by_route(route_id))
        if order_id not in order_ids:
            return
        current_index = order_ids.index(order_id)
        target_index = min(original_index, len(order_ids) - 1)
        if current_index != target_index:
            self.waypoint_store.reorder(route_id, current_index, target_index)

    def _success(self, route_id: str) -> RouteMutationResult:
        return RouteMutationResult(
            success=True,
            route_id=route_id,
            waypoints=self.waypoint_store.list_by_route(route_id),
        )

    def _failure(self, route_id: str, error_message: str) -> RouteMutationResult:
        return RouteMutationResult(
            success=False,
            route_id=route_id,
            waypoints=self.waypoint_store.list_by_route(route_id),
            error_message=error_message,
        )
