"""
Сервисы приложения
"""
from .route_planning_service import RoutePlanningService

__all__ = ['RoutePlanningService']
