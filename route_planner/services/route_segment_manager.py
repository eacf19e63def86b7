"""
Менеджер отрезков маршрута
Рассчитывает, хранит и подсвечивает отрезки между соседними точками маршрута
"""
import asyncio
import logging
from collections import deque
from datetime import datetime
from typing import Deque, Dict, List, Optional, Sequence

from route_planner.application.interfaces.routing_backend import RoutingBackend
from route_planner.config import settings
from route_planner.exceptions import BackendFailure
from route_planner.models.segment import (
    Highlighted, RouteData, RouteSegment, RouteStyle, SegmentStatus, Stop, Unhighlighted
)
from route_planner.services.waypoint_helpers import consecutive_pairs

logger = logging.getLogger(__name__)


class RouteSegmentManager:
    """
    Менеджер отрезков маршрута

    Расчеты идут через очередь: одновременно выполняется не более одного
    запроса к сервису маршрутизации, строго в порядке постановки в очередь.
    Ошибки сервиса записываются в отрезок (status="failed") и наружу не пробрасываются.
    Экземпляры независимы: у каждого своя очередь.
    """

    def __init__(
        self,
        backend: RoutingBackend,
        backend_timeout: Optional[float] = None,
        highlight_style: Optional[RouteStyle] = None
    ):
        """
        Args:
            backend: Сервис маршрутизации
            backend_timeout: Ограничение времени одного расчета, секунды (None - без ограничения)
            highlight_style: Стиль подсвеченного отрезка
        """
        self.backend = backend
        self.backend_timeout = backend_timeout
        self.highlight_style = highlight_style or RouteStyle(
            color=settings.highlight_color,
            weight=settings.highlight_weight,
            opacity=settings.highlight_opacity,
        )
        self._segments: Dict[str, RouteSegment] = {}
        self._queue: Deque[str] = deque()
        self._processing = False
        self._drain_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Публичный API
    # ------------------------------------------------------------------

    def upsert_segment(self, from_stop: Stop, to_stop: Stop) -> RouteSegment:
        """
        Создать отрезок или обновить данные его точек

        Если у отрезка еще нет результата расчета и он не считается,
        он ставится в очередь. При запущенном event loop очередь начинает
        обрабатываться сразу, иначе - при следующем recalculate()/wait_until_idle().

        Returns:
            Отслеживаемый отрезок (не изменять снаружи)
        """
        segment_id = RouteSegment.make_id(from_stop, to_stop)
        segment = self._segments.get(segment_id)

        if segment is None:
            segment = RouteSegment(id=segment_id, from_stop=from_stop, to_stop=to_stop)
            self._segments[segment_id] = segment
            logger.debug(f"Создан отрезок {segment_id}")
        else:
            segment.from_stop = from_stop
            segment.to_stop = to_stop
            segment.updated_at = datetime.utcnow()

        if segment.route_data is None and segment.status != "calculating":
            self._enqueue(segment_id)
            self._schedule_drain()

        return segment

    async def recalculate(self, segment_id: str) -> Optional[RouteSegment]:
        """
        Поставить отрезок в очередь на пересчет

        Повторная постановка уже ожидающего отрезка игнорируется.
        Если очередь не обрабатывается (в том числе когда отрезки поставлены
        в очередь без event loop), обработка запускается и ожидается до конца;
        иначе метод возвращается сразу, результат можно узнать по статусу отрезка.

        Returns:
            Отрезок или None, если такого отрезка нет
        """
        if segment_id not in self._segments:
            logger.warning(f"⚠️ Пересчет неизвестного отрезка {segment_id} пропущен")
            return None

        self._enqueue(segment_id)
        if not self._processing:
            task = self._schedule_drain()
            if task is not None:
                await asyncio.shield(task)

        return self._segments.get(segment_id)

    def remove_segment(self, segment_id: str) -> None:
        """
        Удалить отрезок вместе с линией и ожидающим расчетом

        Уже идущий запрос не прерывается, его результат будет отброшен.
        """
        segment = self._segments.pop(segment_id, None)
        if segment is None:
            return

        if segment.map_route is not None:
            self.backend.remove_route_segment(segment.map_route.id)

        if segment_id in self._queue:
            self._queue.remove(segment_id)

        logger.debug(f"Отрезок {segment_id} удален")

    def sync_route(self, stops: Sequence[Stop]) -> List[RouteSegment]:
        """
        Привести отрезки к списку остановок

        Для n остановок создаются/обновляются n-1 отрезков соседних пар,
        все остальные отслеживаемые отрезки удаляются.

        Returns:
            Отрезки маршрута по порядку
        """
        current = [self.upsert_segment(a, b) for a, b in consecutive_pairs(stops)]
        current_ids = {segment.id for segment in current}

        stale_ids = [segment_id for segment_id in self._segments if segment_id not in current_ids]
        for segment_id in stale_ids:
            self.remove_segment(segment_id)

        if stale_ids:
            logger.info(f"🔄 Удалено устаревших отрезков: {len(stale_ids)}")
        return current

    def get(self, segment_id: str) -> Optional[RouteSegment]:
        return self._segments.get(segment_id)

    def list_all(self) -> List[RouteSegment]:
        return list(self._segments.values())

    def list_by_status(self, status: SegmentStatus) -> List[RouteSegment]:
        return [segment for segment in self._segments.values() if segment.status == status]

    def is_calculating(self, segment_id: str) -> bool:
        """Отрезок считается сейчас или ждет в очереди"""
        segment = self._segments.get(segment_id)
        if segment is not None and segment.status == "calculating":
            return True
        return segment_id in self._queue

    @property
    def segment_count(self) -> int:
        return len(self._segments)

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def wait_until_idle(self) -> None:
        """Дождаться, пока очередь расчетов опустеет"""
        task = self._drain_task if self._processing else None
        if task is None and self._queue:
            task = self._schedule_drain()
        if task is not None:
            await asyncio.shield(task)

    def clear(self) -> None:
        """Удалить все отрезки и линии, очистить очередь"""
        for segment in self._segments.values():
            if segment.map_route is not None:
                self.backend.remove_route_segment(segment.map_route.id)
        self._segments.clear()
        self._queue.clear()

    # ------------------------------------------------------------------
    # Подсветка
    # ------------------------------------------------------------------

    def highlight(self, segment_id: str) -> None:
        """
        Подсветить отрезок

        Исходный стиль запоминается только при первой подсветке,
        повторный вызов его не перезаписывает.
        """
        segment = self._segments.get(segment_id)
        if segment is None or segment.map_route is None:
            logger.debug(f"Подсветка пропущена: у отрезка {segment_id} нет линии")
            return

        if isinstance(segment.highlight, Unhighlighted):
            segment.highlight = Highlighted(original_style=segment.map_route.style)

        segment.map_route.style = self.highlight_style
        self._push_style(segment)

    def unhighlight(self, segment_id: str) -> None:
        """Вернуть исходный стиль отрезка; без предшествующей подсветки ничего не делает"""
        segment = self._segments.get(segment_id)
        if segment is None or not isinstance(segment.highlight, Highlighted):
            return

        original_style = segment.highlight.original_style
        segment.highlight = Unhighlighted()
        if segment.map_route is not None:
            segment.map_route.style = original_style
            self._push_style(segment)

    def _push_style(self, segment: RouteSegment) -> None:
        style = segment.map_route.style
        route_data = segment.route_data or RouteData(polyline=segment.geometry)
        self.backend.update_route_segment(
            segment.map_route,
            route_data.model_copy(update={
                'color': style.color,
                'weight': style.weight,
                'opacity': style.opacity,
            }),
        )

    # ------------------------------------------------------------------
    # Очередь расчетов
    # ------------------------------------------------------------------

    def _enqueue(self, segment_id: str) -> bool:
        if segment_id in self._queue:
            return False
        self._queue.append(segment_id)
        return True

    def _schedule_drain(self) -> Optional[asyncio.Task]:
        if self._processing:
            return self._drain_task

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"Event loop не запущен, в очереди отрезков: {len(self._queue)}")
            return None

        self._processing = True
        self._drain_task = loop.create_task(self._drain())
        return self._drain_task

    async def _drain(self) -> None:
        try:
            while self._queue:
                segment_id = self._queue.popleft()
                segment = self._segments.get(segment_id)
                if segment is not None:
                    await self._calculate(segment)
        finally:
            self._processing = False
            self._drain_task = None

    async def _calculate(self, segment: RouteSegment) -> None:
        segment.status = "calculating"
        segment.updated_at = datetime.utcnow()

        try:
            route_data = await self._request_route(segment)
            if not self._is_tracked(segment):
                logger.debug(f"Отрезок {segment.id} удален во время расчета, результат отброшен")
                return
            self._apply_route(segment, route_data)
        except Exception as e:
            if not self._is_tracked(segment):
                logger.debug(f"Отрезок {segment.id} удален во время расчета, ошибка отброшена: {e}")
                return
            message = str(e) or type(e).__name__
            segment.status = "failed"
            segment.route_data = RouteData(status="failed", error=message)
            segment.updated_at = datetime.utcnow()
            logger.error(f"❌ Не удалось рассчитать отрезок {segment.id}: {message}")

    async def _request_route(self, segment: RouteSegment) -> RouteData:
        call = self.backend.create_route_segment(segment.from_stop, segment.to_stop)
        try:
            if self.backend_timeout:
                route_data = await asyncio.wait_for(call, timeout=self.backend_timeout)
            else:
                route_data = await call
        except asyncio.TimeoutError as e:
            raise BackendFailure(
                f"Сервис маршрутизации не ответил за {self.backend_timeout} с"
            ) from e

        if route_data is None or route_data.status == "failed":
            error = route_data.error if route_data is not None else None
            raise BackendFailure(error or "Сервис маршрутизации вернул ошибку")
        return route_data

    def _apply_route(self, segment: RouteSegment, route_data: RouteData) -> None:
        if segment.map_route is not None:
            self.backend.remove_route_segment(segment.map_route.id)
            segment.map_route = None

        map_route = self.backend.draw_route_segment(route_data)
        if map_route is None:
            raise BackendFailure(f"Не удалось нарисовать отрезок {segment.id}")
        map_route.segment_id = segment.id

        now = datetime.utcnow()
        segment.route_data = route_data.model_copy(update={'status': "calculated", 'calculated_at': now})
        segment.map_route = map_route
        segment.status = "calculated"
        segment.updated_at = now
        logger.debug(
            f"✅ Отрезок {segment.id}: {segment.route_data.distance:.0f} м, "
            f"{segment.route_data.duration:.0f} с"
        )

        # Новая линия рисуется обычным стилем; если отрезок был подсвечен - подсвечиваем снова
        if isinstance(segment.highlight, Highlighted):
            segment.highlight = Unhighlighted()
            self.highlight(segment.id)

    def _is_tracked(self, segment: RouteSegment) -> bool:
        return self._segments.get(segment.id) is segment
