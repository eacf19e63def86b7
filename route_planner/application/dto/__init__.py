"""
DTO модуль
"""
from .route_dto import RouteSegmentDTO, RouteSummaryDTO, RouteMutationResult

__all__ = [
    'RouteSegmentDTO',
    'RouteSummaryDTO',
    'RouteMutationResult',
]
