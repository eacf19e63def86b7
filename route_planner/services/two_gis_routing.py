"""
Сервис маршрутизации через 2GIS Routing API
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import aiohttp

from route_planner.config import settings
from route_planner.exceptions import BackendFailure
from route_planner.models.segment import BoundingBox, Point, RouteData, Stop
from route_planner.services.routing_backends import BaseRoutingBackend

logger = logging.getLogger(__name__)

TWO_GIS_ROUTING_URL = "https://routing.api.2gis.com/routing/7.0.0/global"

_LINESTRING_RE = re.compile(r"LINESTRING\s*\((.*)\)", re.IGNORECASE)


def parse_linestring(wkt: str) -> List[Point]:
    """
    Разобрать WKT LINESTRING(lon lat, lon lat, ...) в список (lat, lon)
    """
    match = _LINESTRING_RE.search(wkt or "")
    if not match:
        return []
    points: List[Point] = []
    for pair in match.group(1).split(","):
        parts = pair.split()
        if len(parts) < 2:
            continue
        lon, lat = float(parts[0]), float(parts[1])
        points.append((lat, lon))
    return points


def extract_geometry(route_obj: Dict[str, Any]) -> List[Point]:
    """Собрать линию маршрута из маневров ответа 2ГИС"""
    points: List[Point] = []
    for maneuver in route_obj.get("maneuvers") or []:
        path = maneuver.get("outcoming_path") or {}
        for chunk in path.get("geometry") or []:
            for point in parse_linestring(chunk.get("selection", "")):
                # Соседние куски начинаются с конца предыдущего
                if not points or points[-1] != point:
                    points.append(point)
    return points


class TwoGisRoutingBackend(BaseRoutingBackend):
    """
    Расчет отрезков через 2GIS Routing API (с учетом пробок)

    Использование:
        async with TwoGisRoutingBackend() as backend:
            data = await backend.create_route_segment(a, b)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        traffic: bool = True,
        **kwargs
    ):
        super().__init__(**kwargs)
        self.api_key = api_key or settings.two_gis_api_key
        if not self.api_key:
            raise ValueError("Не задан ключ 2GIS API (ROUTE_PLANNER_TWO_GIS_API_KEY)")
        self.transport = transport or settings.routing_transport
        self.timeout_seconds = timeout_seconds or settings.routing_timeout_seconds or None
        self.traffic = traffic
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self.session

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _build_payload(self, from_stop: Stop, to_stop: Stop) -> Dict[str, Any]:
        payload = {
            "points": [
                {"type": "stop", "lon": from_stop.longitude, "lat": from_stop.latitude},
                {"type": "stop", "lon": to_stop.longitude, "lat": to_stop.latitude},
            ],
            "locale": "ru",
            "transport": self.transport,
            "route_mode": "fastest",
            "output": "detailed",
        }
        if self.traffic:
            payload["traffic_mode"] = "jam"
        return payload

    async def create_route_segment(self, from_stop: Stop, to_stop: Stop) -> RouteData:
        session = self._ensure_session()
        payload = self._build_payload(from_stop, to_stop)

        try:
            async with session.post(
                TWO_GIS_ROUTING_URL, params={"key": self.api_key}, json=payload
            ) as response:
                if response.status == 429:
                    raise BackendFailure("2GIS: превышен лимит запросов (429)")
                if response.status != 200:
                    text = (await response.text())[:400]
                    raise BackendFailure(f"2GIS: HTTP {response.status}: {text}")
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise BackendFailure(f"2GIS: ошибка соединения: {e}") from e

        return self._parse_response(data, from_stop, to_stop)

    def _parse_response(self, data: Any, from_stop: Stop, to_stop: Stop) -> RouteData:
        result = None
        if isinstance(data, dict):
            result = data.get("result")
        elif isinstance(data, list) and data:
            result = data[0].get("result")

        if not isinstance(result, list) or not result:
            message = data.get("message") if isinstance(data, dict) else None
            raise BackendFailure(f"2GIS: маршрут не найден{': ' + message if message else ''}")

        route_obj = result[0]
        polyline = extract_geometry(route_obj) or [from_stop.point, to_stop.point]
        logger.debug(
            f"2GIS маршрут {from_stop.id} -> {to_stop.id}: "
            f"{route_obj.get('total_distance')} м, {route_obj.get('total_duration')} с, "
            f"точек линии: {len(polyline)}"
        )
        return RouteData(
            polyline=polyline,
            distance=float(route_obj.get("total_distance", 0)),
            duration=float(route_obj.get("total_duration", 0)),
            bounds=BoundingBox.around(*polyline),
            status="calculated",
            calculated_at=datetime.utcnow(),
        )
