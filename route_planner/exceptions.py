"""
Ошибки планирования маршрутов

Ошибки из-за неверных данных вызывающего кода наследуются от стандартных
ValueError / LookupError / IndexError, ошибка внешнего сервиса маршрутизации - BackendFailure.
"""


class RoutePlannerError(Exception):
    """Базовая ошибка пакета"""


class DuplicateMembership(RoutePlannerError, ValueError):
    """Заказ уже есть в этом маршруте"""

    def __init__(self, route_id: str, order_id: str):
        self.route_id = route_id
        self.order_id = order_id
        super().__init__(f"Заказ {order_id} уже есть в маршруте {route_id}")


class NotFound(RoutePlannerError, LookupError):
    """Маршрут, заказ или отрезок не найден"""


class IndexOutOfRange(RoutePlannerError, IndexError):
    """Индекс перестановки вне допустимого диапазона"""

    def __init__(self, route_id: str, from_index: int, to_index: int, length: int):
        self.route_id = route_id
        self.from_index = from_index
        self.to_index = to_index
        self.length = length
        super().__init__(
            f"Некорректные индексы {from_index} -> {to_index} для маршрута {route_id} "
            f"(точек: {length})"
        )


class BackendFailure(RoutePlannerError):
    """Сервис маршрутизации вернул ошибку или не ответил"""
