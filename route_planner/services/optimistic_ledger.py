"""
Журнал оптимистичных изменений

Интерфейс применяет изменение сразу, а журнал помнит, какие изменения еще
не подтверждены сервером. Журнал переживает перезагрузку (если хранилище
постоянное) и никогда не выбрасывает исключений.

Откат при ошибке журнал не делает: mark_failed только меняет статус,
согласование состояния - задача вызывающего кода (см. RoutePlanningService).
"""
import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from route_planner.models.ledger import (
    AssignmentAction, AssignmentUpdate, OrderFieldUpdate, UpdateStatus
)
from route_planner.models.order import Order
from route_planner.models.waypoint import Waypoint
from route_planner.repositories.ledger_repository import (
    ASSIGNMENTS_COLLECTION, ORDER_FIELDS_COLLECTION, LedgerStorage
)
from route_planner.utils.error_handler import log_errors

logger = logging.getLogger(__name__)

LedgerKey = Union[Tuple[str, str], str]
LedgerEntry = Union[AssignmentUpdate, OrderFieldUpdate]


class OptimisticLedger:
    """
    Журнал оптимистичных изменений

    Две коллекции:
        - привязки заказов к маршрутам, ключ (route_id, order_id)
        - изменения полей заказа, ключ order_id
    На каждый ключ хранится не больше одной записи: новая запись заменяет старую.
    """

    def __init__(self, storage: LedgerStorage):
        """
        Args:
            storage: Хранилище коллекций
        """
        self.storage = storage
        # Чтение-изменение-запись коллекции выполняется под блокировкой
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Запись
    # ------------------------------------------------------------------

    @log_errors(message="Ошибка записи привязки в журнал")
    def record_assignment(self, route_id: str, order_id: str, action: AssignmentAction) -> None:
        """
        Записать добавление/удаление заказа в маршруте (статус pending)

        Args:
            route_id: ID маршрута
            order_id: ID заказа
            action: "add" или "remove"
        """
        update = AssignmentUpdate(route_id=route_id, order_id=order_id, action=action)
        with self._lock:
            entries = [e for e in self._load_assignments() if e.key != update.key]
            entries.append(update)
            self._save(ASSIGNMENTS_COLLECTION, entries)
        logger.debug(f"Журнал: {action} {order_id} в маршруте {route_id}")

    @log_errors(message="Ошибка записи изменения заказа в журнал")
    def record_order_field(self, order_id: str, fields: Dict[str, Any]) -> None:
        """
        Записать изменение полей заказа (статус pending)

        Args:
            order_id: ID заказа
            fields: Новые значения полей
        """
        update = OrderFieldUpdate(order_id=order_id, fields=dict(fields))
        with self._lock:
            entries = [e for e in self._load_order_fields() if e.key != update.key]
            entries.append(update)
            self._save(ORDER_FIELDS_COLLECTION, entries)
        logger.debug(f"Журнал: изменение заказа {order_id}: {sorted(fields)}")

    def mark_completed(self, key: LedgerKey) -> None:
        """Отметить запись подтвержденной; ключ (route_id, order_id) или order_id"""
        self._mark(key, "completed")

    def mark_failed(self, key: LedgerKey) -> None:
        """Отметить запись неуспешной; состояние интерфейса не откатывается"""
        self._mark(key, "failed")

    def mark_assignment_completed(self, route_id: str, order_id: str) -> None:
        self._mark_assignment((route_id, order_id), "completed")

    def mark_assignment_failed(self, route_id: str, order_id: str) -> None:
        self._mark_assignment((route_id, order_id), "failed")

    def mark_order_field_completed(self, order_id: str) -> None:
        self._mark_order_field(order_id, "completed")

    def mark_order_field_failed(self, order_id: str) -> None:
        self._mark_order_field(order_id, "failed")

    @log_errors(message="Ошибка очистки журнала")
    def purge_settled(self) -> None:
        """Удалить все записи, кроме ожидающих подтверждения"""
        with self._lock:
            assignments = [e for e in self._load_assignments() if e.status == "pending"]
            order_fields = [e for e in self._load_order_fields() if e.status == "pending"]
            self._save(ASSIGNMENTS_COLLECTION, assignments)
            self._save(ORDER_FIELDS_COLLECTION, order_fields)

    @log_errors(message="Ошибка сброса журнала")
    def reset_all(self) -> None:
        """Удалить все записи (перед полной синхронизацией с сервером)"""
        with self._lock:
            self._save(ASSIGNMENTS_COLLECTION, [])
            self._save(ORDER_FIELDS_COLLECTION, [])
        logger.info("🔄 Журнал оптимистичных изменений очищен")

    # ------------------------------------------------------------------
    # Чтение
    # ------------------------------------------------------------------

    @log_errors(default=[], message="Ошибка чтения журнала")
    def list_assignments(self, status: Optional[UpdateStatus] = None) -> List[AssignmentUpdate]:
        return [e for e in self._load_assignments() if status is None or e.status == status]

    @log_errors(default=[], message="Ошибка чтения журнала")
    def list_order_fields(self, status: Optional[UpdateStatus] = None) -> List[OrderFieldUpdate]:
        return [e for e in self._load_order_fields() if status is None or e.status == status]

    def list_pending(self) -> List[LedgerEntry]:
        """Неподтвержденные записи обеих коллекций"""
        return [*self.list_assignments("pending"), *self.list_order_fields("pending")]

    def list_unconfirmed(self) -> List[LedgerEntry]:
        """Записи, запрос по которым завершился ошибкой"""
        return [*self.list_assignments("failed"), *self.list_order_fields("failed")]

    # ------------------------------------------------------------------
    # Наложение неподтвержденных изменений на свежие данные
    # ------------------------------------------------------------------

    def apply_pending_order_fields(self, orders: Iterable[Order]) -> List[Order]:
        """
        Наложить неподтвержденные изменения полей на заказы

        Args:
            orders: Заказы, только что полученные с сервера

        Returns:
            Копии заказов с примененными изменениями
        """
        orders = list(orders)
        pending = {e.order_id: e for e in self.list_order_fields("pending")}
        result = []
        for order in orders:
            update = pending.get(order.id)
            if update is None:
                result.append(order)
                continue
            fields = {
                name: value for name, value in update.fields.items()
                if name in Order.model_fields and name != "id"
            }
            result.append(order.model_copy(update=fields))
        return result

    def apply_pending_assignments(
        self,
        route_id: str,
        waypoints: Iterable[Waypoint],
        known_order_ids: Optional[Set[str]] = None
    ) -> List[Waypoint]:
        """
        Наложить неподтвержденные добавления/удаления на точки маршрута

        Добавленные заказы встают в конец маршрута (если заказ известен и
        еще не в маршруте), удаленные убираются; затем точки перенумеровываются.

        Args:
            route_id: ID маршрута
            waypoints: Точки маршрута, только что полученные с сервера
            known_order_ids: Существующие заказы (None - не проверять)

        Returns:
            Точки маршрута с примененными изменениями
        """
        current = sorted(waypoints, key=lambda w: w.sequence)
        updates = sorted(
            (e for e in self.list_assignments("pending") if e.route_id == route_id),
            key=lambda e: e.timestamp,
        )

        for update in updates:
            if update.action == "add":
                if known_order_ids is not None and update.order_id not in known_order_ids:
                    continue
                if any(w.order_id == update.order_id for w in current):
                    continue
                current.append(Waypoint(route_id=route_id, order_id=update.order_id, sequence=len(current)))
            elif update.action == "remove":
                current = [w for w in current if w.order_id != update.order_id]

        return [w.model_copy(update={'sequence': index}) for index, w in enumerate(current)]

    # ------------------------------------------------------------------
    # Внутренние методы
    # ------------------------------------------------------------------

    def _mark(self, key: LedgerKey, status: UpdateStatus) -> None:
        if isinstance(key, tuple):
            self._mark_assignment(key, status)
        else:
            self._mark_order_field(key, status)

    @log_errors(message="Ошибка обновления статуса привязки")
    def _mark_assignment(self, key: Tuple[str, str], status: UpdateStatus) -> None:
        with self._lock:
            entries = self._load_assignments()
            changed = False
            for entry in entries:
                if entry.key == tuple(key):
                    entry.status = status
                    changed = True
            if changed:
                self._save(ASSIGNMENTS_COLLECTION, entries)

    @log_errors(message="Ошибка обновления статуса изменения заказа")
    def _mark_order_field(self, order_id: str, status: UpdateStatus) -> None:
        with self._lock:
            entries = self._load_order_fields()
            changed = False
            for entry in entries:
                if entry.order_id == order_id:
                    entry.status = status
                    changed = True
            if changed:
                self._save(ORDER_FIELDS_COLLECTION, entries)

    def _load_assignments(self) -> List[AssignmentUpdate]:
        return self._load(ASSIGNMENTS_COLLECTION, AssignmentUpdate)

    def _load_order_fields(self) -> List[OrderFieldUpdate]:
        return self._load(ORDER_FIELDS_COLLECTION, OrderFieldUpdate)

    def _load(self, collection: str, model):
        entries = []
        for raw in self.storage.read(collection):
            try:
                entries.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"⚠️ Пропущена поврежденная запись журнала {collection}: {e}")
        return entries

    def _save(self, collection: str, entries: List[LedgerEntry]) -> None:
        self.storage.write(collection, [e.model_dump(mode="json") for e in entries])
