from datetime import datetime
from typing import Any, Dict, Literal, Tuple
from pydantic import BaseModel, Field
from sqlalchemy import Column, DateTime, Integer, JSON, String

from route_planner.database.connection import Base

UpdateStatus = Literal["pending", "completed", "failed"]
AssignmentAction = Literal["add", "remove"]


class OptimisticLedgerDB(Base):
    """Коллекция записей журнала: одна строка на коллекцию, записи целиком в JSON"""
    __tablename__ = "optimistic_ledger"

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String, nullable=False, unique=True, index=True)
    entries = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class AssignmentUpdate(BaseModel):
    """Оптимистичное добавление/удаление заказа в маршруте"""
    route_id: str
    order_id: str
    action: AssignmentAction
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    status: UpdateStatus = "pending"

    @property
    def key(self) -> Tuple[str, str]:
        return (self.route_id, self.order_id)


class OrderFieldUpdate(BaseModel):
    """Оптимистичное изменение полей заказа"""
    order_id: str
    fields: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    status: UpdateStatus = "pending"

    @property
    def key(self) -> str:
        return self.order_id
