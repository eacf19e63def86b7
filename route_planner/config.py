from typing import Literal, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./route_planner.db"

    # Routing API
    two_gis_api_key: Optional[str] = None
    routing_transport: str = "driving"
    routing_timeout_seconds: float = 30.0  # 0 = без ограничения

    # Подсветка отрезков маршрута
    highlight_color: str = "#ef4444"
    highlight_weight: int = 6
    highlight_opacity: float = 1.0

    # Журнал оптимистичных изменений
    ledger_storage: Literal["memory", "sql"] = "memory"

    class Config:
        # Переменные окружения вида ROUTE_PLANNER_TWO_GIS_API_KEY
        env_prefix = "ROUTE_PLANNER_"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "allow"


settings = Settings()
