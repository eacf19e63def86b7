"""
Централизованная обработка ошибок
"""
import copy
import logging
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


def log_errors(
    func: Optional[Callable] = None,
    default: Any = None,
    message: Optional[str] = None
) -> Callable:
    """
    Декоратор для функций, которые не должны выбрасывать исключения

    Ошибка логируется, вместо результата возвращается default
    (изменяемые значения по умолчанию копируются на каждый вызов).

    Использование:
        @log_errors
        def save():
            ...

        @log_errors(default=[], message="Ошибка чтения журнала")
        def read():
            ...
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def wrapper(*args, **kwargs) -> Any:
            try:
                return f(*args, **kwargs)
            except Exception as e:
                logger.error(f"{message or 'Error in ' + f.__name__}: {e}", exc_info=True)
                return copy.copy(default)
        return wrapper

    if func is None:
        # Декоратор вызван с аргументами
        return decorator
    else:
        # Декоратор вызван без аргументов
        return decorator(func)
