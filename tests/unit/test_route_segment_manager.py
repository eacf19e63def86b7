"""
Unit-тесты для RouteSegmentManager
"""
import asyncio
import pytest

from route_planner.models.segment import DEFAULT_ROUTE_STYLE, RouteSegment, RouteStyle
from route_planner.services.route_segment_manager import RouteSegmentManager

HIGHLIGHT_STYLE = RouteStyle(color="#ef4444", weight=6, opacity=1.0)


@pytest.fixture
def manager(fake_backend):
    """Менеджер отрезков с тестовым сервисом маршрутизации"""
    return RouteSegmentManager(fake_backend, highlight_style=HIGHLIGHT_STYLE)


@pytest.mark.unit
class TestSegmentIdentity:
    """Тесты идентификаторов отрезков"""

    def test_id_is_directional(self, sample_stops):
        a, b = sample_stops[0], sample_stops[1]

        assert RouteSegment.make_id(a, b) == "O1-O2"
        assert RouteSegment.make_id(b, a) == "O2-O1"

    def test_upsert_same_pair_reuses_segment(self, manager, sample_stops):
        """Повторный upsert не создает второй отрезок и не ставит его в очередь дважды"""
        first = manager.upsert_segment(sample_stops[0], sample_stops[1])
        second = manager.upsert_segment(sample_stops[0], sample_stops[1])

        assert first is second
        assert manager.segment_count == 1
        assert manager.queued_count == 1

    def test_upsert_without_loop_keeps_queue(self, manager, sample_stops):
        """Без event loop отрезок ждет в очереди"""
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])

        assert segment.status == "idle"
        assert manager.is_calculating(segment.id)
        assert not manager.is_processing


@pytest.mark.unit
class TestCalculation:
    """Тесты очереди расчетов"""

    async def test_segments_calculated_one_at_a_time(self, manager, fake_backend, sample_stops):
        """Запросы к сервису идут по одному, в порядке постановки"""
        for a, b in zip(sample_stops, sample_stops[1:]):
            manager.upsert_segment(a, b)

        await manager.wait_until_idle()

        assert fake_backend.calls == ["O1-O2", "O2-O3", "O3-O4"]
        assert fake_backend.max_active == 1
        assert all(s.status == "calculated" for s in manager.list_all())
        assert len(fake_backend.routes) == 3
        assert not manager.is_processing
        assert manager.queued_count == 0

    async def test_calculated_segment_has_route(self, manager, fake_backend, sample_stops):
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()

        assert segment.distance == 1000.0
        assert segment.duration == 120.0
        assert segment.map_route.segment_id == segment.id
        assert segment.map_route.id in fake_backend.routes
        assert segment.route_data.calculated_at is not None

    async def test_upsert_calculated_segment_is_not_requeued(self, manager, fake_backend, sample_stops):
        manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()

        manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()

        assert fake_backend.calls == ["O1-O2"]

    async def test_failure_is_recorded(self, manager, fake_backend, sample_stops):
        """Ошибка сервиса записывается в отрезок, остальные считаются"""
        fake_backend.failures["O1-O2"] = RuntimeError("сервис недоступен")

        failed = manager.upsert_segment(sample_stops[0], sample_stops[1])
        ok = manager.upsert_segment(sample_stops[1], sample_stops[2])
        await manager.wait_until_idle()

        assert failed.status == "failed"
        assert failed.error == "сервис недоступен"
        assert failed.map_route is None
        assert ok.status == "calculated"
        assert manager.list_by_status("failed") == [failed]

    async def test_timeout_marks_failed(self, fake_backend, sample_stops):
        """Сервис, не ответивший вовремя, дает failed"""
        fake_backend.gate = asyncio.Event()
        manager = RouteSegmentManager(fake_backend, backend_timeout=0.01)

        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()

        assert segment.status == "failed"
        assert segment.error
        assert fake_backend.active == 0

    async def test_removed_during_calculation_result_is_dropped(self, manager, fake_backend, sample_stops):
        """Результат для удаленного во время расчета отрезка отбрасывается"""
        fake_backend.gate = asyncio.Event()

        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        await asyncio.sleep(0)
        assert segment.status == "calculating"
        assert manager.is_calculating(segment.id)

        manager.remove_segment(segment.id)
        fake_backend.gate.set()
        await manager.wait_until_idle()

        assert manager.get(segment.id) is None
        assert fake_backend.routes == {}

    async def test_recalculate_replaces_route(self, manager, fake_backend, sample_stops):
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()
        old_route_id = segment.map_route.id

        result = await manager.recalculate(segment.id)

        assert result is segment
        assert fake_backend.calls == ["O1-O2", "O1-O2"]
        assert segment.map_route.id != old_route_id
        assert list(fake_backend.routes) == [segment.map_route.id]

    def test_recalculate_drains_segment_queued_without_loop(self, manager, fake_backend, sample_stops):
        """Отрезок, поставленный в очередь без event loop, считается при recalculate"""
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        assert manager.queued_count == 1

        result = asyncio.run(manager.recalculate(segment.id))

        assert result is segment
        assert segment.status == "calculated"
        assert fake_backend.calls == ["O1-O2"]
        assert manager.queued_count == 0
        assert not manager.is_processing

    async def test_removed_queued_segment_is_never_requested(self, manager, fake_backend, sample_stops):
        """Удаление ожидающего в очереди отрезка убирает его из очереди"""
        fake_backend.gate = asyncio.Event()
        first = manager.upsert_segment(sample_stops[0], sample_stops[1])
        second = manager.upsert_segment(sample_stops[1], sample_stops[2])
        await asyncio.sleep(0)
        assert first.status == "calculating"
        assert manager.is_calculating(second.id)

        manager.remove_segment(second.id)
        assert not manager.is_calculating(second.id)

        fake_backend.gate.set()
        await manager.wait_until_idle()

        assert fake_backend.calls == ["O1-O2"]
        assert manager.get(second.id) is None
        assert first.status == "calculated"

    async def test_failed_segment_recovers_on_recalculate(self, manager, fake_backend, sample_stops):
        """failed -> calculating -> calculated"""
        fake_backend.failures["O1-O2"] = RuntimeError("сервис недоступен")
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()
        assert segment.status == "failed"

        del fake_backend.failures["O1-O2"]
        fake_backend.gate = asyncio.Event()
        task = asyncio.ensure_future(manager.recalculate(segment.id))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert segment.status == "calculating"

        fake_backend.gate.set()
        await task

        assert segment.status == "calculated"
        assert segment.error is None
        assert segment.map_route is not None
        assert fake_backend.calls == ["O1-O2", "O1-O2"]

    async def test_recalculate_unknown_segment(self, manager, fake_backend):
        assert await manager.recalculate("X-Y") is None
        assert fake_backend.calls == []

    async def test_recalculate_pending_segment_is_deduplicated(self, manager, fake_backend, sample_stops):
        fake_backend.gate = asyncio.Event()
        first = manager.upsert_segment(sample_stops[0], sample_stops[1])
        second = manager.upsert_segment(sample_stops[1], sample_stops[2])
        await asyncio.sleep(0)

        await manager.recalculate(second.id)
        await manager.recalculate(second.id)
        assert manager.queued_count == 1

        fake_backend.gate.set()
        await manager.wait_until_idle()

        assert fake_backend.calls == [first.id, second.id]


@pytest.mark.unit
class TestSyncRoute:
    """Тесты синхронизации отрезков со списком остановок"""

    async def test_sync_creates_consecutive_pairs(self, manager, sample_stops):
        segments = manager.sync_route(sample_stops[:3])
        await manager.wait_until_idle()

        assert [s.id for s in segments] == ["O1-O2", "O2-O3"]
        assert all(s.status == "calculated" for s in segments)

    async def test_sync_removes_stale_segments(self, manager, fake_backend, sample_stops):
        o1, o2, o3 = sample_stops[:3]
        manager.sync_route([o1, o2, o3])
        await manager.wait_until_idle()

        segments = manager.sync_route([o1, o3])
        await manager.wait_until_idle()

        assert [s.id for s in segments] == ["O1-O3"]
        assert [s.id for s in manager.list_all()] == ["O1-O3"]
        assert len(fake_backend.routes) == 1

    def test_sync_single_stop_has_no_segments(self, manager, sample_stops):
        assert manager.sync_route(sample_stops[:1]) == []
        assert manager.segment_count == 0

    async def test_clear(self, manager, fake_backend, sample_stops):
        manager.sync_route(sample_stops)
        await manager.wait_until_idle()

        manager.clear()

        assert manager.segment_count == 0
        assert fake_backend.routes == {}


@pytest.mark.unit
class TestHighlight:
    """Тесты подсветки отрезков"""

    async def _calculated_segment(self, manager, sample_stops):
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])
        await manager.wait_until_idle()
        return segment

    async def test_highlight_applies_style(self, manager, fake_backend, sample_stops):
        segment = await self._calculated_segment(manager, sample_stops)

        manager.highlight(segment.id)

        assert segment.is_highlighted
        drawn = fake_backend.routes[segment.map_route.id]
        assert drawn.style.color == "#ef4444"
        assert drawn.style.weight == 6
        assert drawn.style.opacity == 1.0

    async def test_highlight_round_trip_restores_style(self, manager, fake_backend, sample_stops):
        """Повторная подсветка не затирает исходный стиль"""
        segment = await self._calculated_segment(manager, sample_stops)

        manager.highlight(segment.id)
        manager.highlight(segment.id)
        manager.unhighlight(segment.id)

        assert not segment.is_highlighted
        assert segment.map_route.style == DEFAULT_ROUTE_STYLE
        assert fake_backend.routes[segment.map_route.id].style == DEFAULT_ROUTE_STYLE

    async def test_unhighlight_without_highlight_is_noop(self, manager, fake_backend, sample_stops):
        segment = await self._calculated_segment(manager, sample_stops)

        manager.unhighlight(segment.id)

        assert fake_backend.route_data[segment.map_route.id].color is None

    def test_highlight_without_route_is_skipped(self, manager, sample_stops):
        segment = manager.upsert_segment(sample_stops[0], sample_stops[1])

        manager.highlight(segment.id)
        manager.highlight("X-Y")

        assert not segment.is_highlighted

    async def test_recalculated_segment_stays_highlighted(self, manager, fake_backend, sample_stops):
        segment = await self._calculated_segment(manager, sample_stops)
        manager.highlight(segment.id)

        await manager.recalculate(segment.id)

        assert segment.is_highlighted
        assert fake_backend.routes[segment.map_route.id].style.color == "#ef4444"

        manager.unhighlight(segment.id)
        assert fake_backend.routes[segment.map_route.id].style == DEFAULT_ROUTE_STYLE
