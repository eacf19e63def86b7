"""
Интерфейсы внешних сервисов
"""
from .routing_backend import RoutingBackend, AbstractRoutingBackend
from .route_persistence import RoutePersistence

__all__ = [
    'RoutingBackend',
    'AbstractRoutingBackend',
    'RoutePersistence',
]
