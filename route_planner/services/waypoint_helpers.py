"""
Вспомогательные функции для точек маршрута
"""
from typing import Dict, Iterable, List, Sequence, Tuple, TypeVar

from route_planner.models.order import Order
from route_planner.models.waypoint import Waypoint

T = TypeVar('T')


def resequence_waypoints(waypoints: Iterable[Waypoint]) -> List[Waypoint]:
    """
    Перенумеровать точки маршрута

    Точки сортируются по текущему sequence (сортировка устойчивая), затем
    каждой присваивается ее позиция в отсортированном списке.
    Повторный вызов ничего не меняет.

    Args:
        waypoints: Точки одного маршрута

    Returns:
        Копии точек с sequence = 0..n-1
    """
    ordered = sorted(waypoints, key=lambda w: w.sequence)
    return [w.model_copy(update={'sequence': index}) for index, w in enumerate(ordered)]


def order_ids_in_sequence(waypoints: Iterable[Waypoint]) -> List[str]:
    """Номера заказов в порядке маршрута"""
    return [w.order_id for w in sorted(waypoints, key=lambda w: w.sequence)]


def get_orders_in_sequence(waypoints: Iterable[Waypoint], orders: Iterable[Order]) -> List[Order]:
    """
    Заказы в порядке маршрута

    Точки, для которых заказ не найден среди orders, пропускаются.
    """
    orders_map: Dict[str, Order] = {o.id: o for o in orders}
    return [
        orders_map[order_id]
        for order_id in order_ids_in_sequence(waypoints)
        if order_id in orders_map
    ]


def populate_waypoints(waypoints: Iterable[Waypoint], orders: Iterable[Order]) -> List[Waypoint]:
    """Копии точек с заполненным снимком заказа для отображения"""
    orders_map: Dict[str, Order] = {o.id: o for o in orders}
    return [w.model_copy(update={'order': orders_map.get(w.order_id)}) for w in waypoints]


def can_order_be_added(order_id: str, route_id: str, existing: Iterable[Waypoint]) -> bool:
    """Можно ли добавить заказ в маршрут (его там еще нет)"""
    return not any(w.order_id == order_id and w.route_id == route_id for w in existing)


def total_drive_time(waypoints: Iterable[Waypoint]) -> float:
    """Суммарное оценочное время в пути, минуты"""
    return sum(w.drive_time_estimate or 0 for w in waypoints)


def consecutive_pairs(items: Sequence[T]) -> List[Tuple[T, T]]:
    """Пары соседних элементов: [a, b, c] -> [(a, b), (b, c)]"""
    return list(zip(items, items[1:]))
