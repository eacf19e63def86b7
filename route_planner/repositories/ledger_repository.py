"""
Хранилища журнала оптимистичных изменений

Журнал хранится двумя именованными коллекциями, каждая читается и
записывается целиком как список словарей.
"""
import copy
import json
import logging
from typing import Any, Callable, ContextManager, Dict, List, Protocol
from sqlalchemy.orm import Session

from route_planner.database.connection import get_db_session
from route_planner.models.ledger import OptimisticLedgerDB

logger = logging.getLogger(__name__)

ASSIGNMENTS_COLLECTION = "optimistic_route_assignments"
ORDER_FIELDS_COLLECTION = "optimistic_order_fields"


class LedgerStorage(Protocol):
    """Протокол хранилища журнала"""

    def read(self, collection: str) -> List[Dict[str, Any]]:
        ...

    def write(self, collection: str, entries: List[Dict[str, Any]]) -> None:
        ...


class InMemoryLedgerStorage:
    """Хранилище в памяти; записи хранятся сериализованными, как в localStorage"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def read(self, collection: str) -> List[Dict[str, Any]]:
        raw = self._data.get(collection)
        return json.loads(raw) if raw else []

    def write(self, collection: str, entries: List[Dict[str, Any]]) -> None:
        self._data[collection] = json.dumps(entries)


class LedgerRepository:
    """Репозиторий журнала в БД: одна строка на коллекцию"""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]] = get_db_session):
        """
        Args:
            session_factory: Контекстный менеджер сессии БД (по умолчанию get_db_session)
        """
        self.session_factory = session_factory

    def read(self, collection: str, session: Session = None) -> List[Dict[str, Any]]:
        """
        Прочитать коллекцию целиком

        Args:
            collection: Имя коллекции
            session: Сессия БД (опционально)

        Returns:
            Записи коллекции (пустой список, если коллекции нет)
        """
        if session is None:
            with self.session_factory() as session:
                return self._read(collection, session)
        return self._read(collection, session)

    def _read(self, collection: str, session: Session) -> List[Dict[str, Any]]:
        """Внутренний метод чтения коллекции"""
        row = self._get_row(collection, session)
        if row is None:
            return []
        return copy.deepcopy(list(row.entries or []))

    def write(self, collection: str, entries: List[Dict[str, Any]], session: Session = None) -> None:
        """
        Перезаписать коллекцию целиком

        Args:
            collection: Имя коллекции
            entries: Записи (JSON-совместимые словари)
            session: Сессия БД (опционально)
        """
        if session is None:
            with self.session_factory() as session:
                self._write(collection, entries, session)
                return
        self._write(collection, entries, session)

    def _write(self, collection: str, entries: List[Dict[str, Any]], session: Session) -> None:
        """Внутренний метод записи коллекции"""
        row = self._get_row(collection, session)
        if row is None:
            row = OptimisticLedgerDB(collection=collection, entries=list(entries))
            session.add(row)
        else:
            row.entries = list(entries)
        session.commit()
        logger.debug(f"Коллекция {collection} сохранена, записей: {len(entries)}")

    @staticmethod
    def _get_row(collection: str, session: Session):
        return session.query(OptimisticLedgerDB).filter(
            OptimisticLedgerDB.collection == collection
        ).first()
