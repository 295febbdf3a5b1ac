"""
Transit Route Service

Public-transport routing against a HAFAS REST endpoint
(default https://v6.db.transport.rest): nearest stops for a coordinate,
journeys between two stops, plus helpers that turn a journey into a
readable summary and a GeoJSON feature collection for map display.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

import requests

from toasttalk.errors import RouteSearchError

logger = logging.getLogger("toasttalk.transit_service")


# ---------------------------------------------------------------------------
# Data model (parsed from the API's JSON)
# ---------------------------------------------------------------------------

@dataclass
class Place:
    name: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @classmethod
    def from_json(cls, data: Optional[dict]) -> "Place":
        data = data or {}
        loc = data.get("location") or {}
        return cls(data.get("name") or "", loc.get("latitude"), loc.get("longitude"))

    def to_dict(self) -> dict:
        return {"name": self.name, "location": {"lat": self.latitude, "lon": self.longitude}}


@dataclass
class TransitStop:
    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance: float = 0

    @classmethod
    def from_json(cls, data: dict) -> "TransitStop":
        loc = data.get("location") or {}
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            latitude=loc.get("latitude"),
            longitude=loc.get("longitude"),
            distance=data.get("distance") or 0,
        )


@dataclass
class Stopover:
    stop: Place
    arrival: Optional[str] = None
    departure: Optional[str] = None


@dataclass
class Leg:
    origin: Place
    destination: Place
    departure: Optional[str] = None
    arrival: Optional[str] = None
    line_name: Optional[str] = None
    line_mode: Optional[str] = None
    walking: bool = False
    distance: int = 0
    stopovers: List[Stopover] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict) -> "Leg":
        line = data.get("line") or {}
        return cls(
            origin=Place.from_json(data.get("origin")),
            destination=Place.from_json(data.get("destination")),
            departure=data.get("departure"),
            arrival=data.get("arrival"),
            line_name=line.get("name"),
            line_mode=line.get("mode"),
            walking=bool(data.get("walking", False)),
            distance=data.get("distance") or 0,
            stopovers=[
                Stopover(Place.from_json(s.get("stop")), s.get("arrival"), s.get("departure"))
                for s in data.get("stopovers") or []
            ],
        )


@dataclass
class Journey:
    legs: List[Leg]
    departure: Optional[str] = None
    arrival: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> "Journey":
        return cls(
            legs=[Leg.from_json(leg) for leg in data.get("legs") or []],
            departure=data.get("departure"),
            arrival=data.get("arrival"),
        )

    @property
    def departure_time(self) -> str:
        """First leg departure, falling back to the journey-level field."""
        if self.legs and self.legs[0].departure:
            return self.legs[0].departure
        return self.departure or ""

    @property
    def arrival_time(self) -> str:
        if self.legs and self.legs[-1].arrival:
            return self.legs[-1].arrival
        return self.arrival or ""

    @property
    def transfers(self) -> int:
        return max(0, sum(1 for leg in self.legs if not leg.walking) - 1)


@dataclass
class RouteSearchResult:
    journeys: List[Journey]
    from_stop: TransitStop
    to_stop: TransitStop


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_MODE_ICONS = {
    "bus": "🚌",
    "tram": "🚊", "streetcar": "🚊",
    "subway": "🚇", "metro": "🚇", "underground": "🚇",
    "train": "🚆", "railway": "🚆",
    "ferry": "⛴️", "boat": "⛴️",
}


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _hhmm(value: Optional[str]) -> Optional[str]:
    parsed = _parse_time(value)
    return parsed.strftime("%H:%M") if parsed else None


def format_route_info(journey: Journey, from_stop: TransitStop, to_stop: TransitStop) -> str:
    """Human-readable route summary with timetable."""
    lines = [
        "Route information",
        f"From: {from_stop.name} ({int(from_stop.distance)}m away)",
        f"To: {to_stop.name} ({int(to_stop.distance)}m away)",
        "",
    ]

    dep = _parse_time(journey.departure or journey.departure_time)
    arr = _parse_time(journey.arrival or journey.arrival_time)
    if dep and arr:
        lines.append(f"Departure: {dep.strftime('%H:%M')}")
        lines.append(f"Arrival: {arr.strftime('%H:%M')}")
        minutes = int((arr - dep).total_seconds() // 60)
        hours, mins = divmod(minutes, 60)
        lines.append(f"Travel time: {hours}h {mins}min" if hours else f"Travel time: {mins}min")

    lines.append(f"Transfers: {journey.transfers}")
    lines.append("")
    lines.append("Legs:")

    for i, leg in enumerate(journey.legs, start=1):
        if leg.walking:
            text = f"{i}. 🚶 Walk {leg.distance}m"
            leg_dep, leg_arr = _parse_time(leg.departure), _parse_time(leg.arrival)
            if leg_dep and leg_arr:
                text += f" (about {int((leg_arr - leg_dep).total_seconds() // 60)} min)"
            lines.append(text)
            continue

        icon = _MODE_ICONS.get((leg.line_mode or "").lower(), "🚌")
        lines.append(f"{i}. {icon} {leg.line_name or 'Unknown line'}")
        origin = f"   From: {leg.origin.name or 'Unknown stop'}"
        if _hhmm(leg.departure):
            origin += f" [{_hhmm(leg.departure)}]"
        lines.append(origin)
        destination = f"   To: {leg.destination.name or 'Unknown stop'}"
        if _hhmm(leg.arrival):
            destination += f" [{_hhmm(leg.arrival)}]"
        lines.append(destination)
        if leg.stopovers:
            lines.append(f"   {len(leg.stopovers)} stops")

    return "\n".join(lines)


def _point(place: Place, kind: str, transit_type: str, **times) -> Optional[dict]:
    if place.latitude is None or place.longitude is None:
        return None
    properties = {"name": place.name or "Unknown", "type": kind, "transit_type": transit_type}
    properties.update({k: v for k, v in times.items() if v})
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [place.longitude, place.latitude]},
        "properties": properties,
    }


def route_geojson(journey: Journey) -> dict:
    """Points for origin/stopovers/destination plus one LineString for the route."""
    features = []
    coordinates = []
    for i, leg in enumerate(journey.legs):
        transit_type = "walking" if leg.walking else (leg.line_mode or "bus").lower()
        candidates = [
            _point(leg.origin, "origin" if i == 0 else "stopover", transit_type,
                   departure=leg.departure),
        ]
        candidates.extend(
            _point(s.stop, "stopover", transit_type, arrival=s.arrival, departure=s.departure)
            for s in leg.stopovers
        )
        candidates.append(
            _point(leg.destination, "destination" if i == len(journey.legs) - 1 else "stopover",
                   transit_type, arrival=leg.arrival)
        )
        for feature in candidates:
            if feature is not None:
                features.append(feature)
                coordinates.append(feature["geometry"]["coordinates"])

    if len(coordinates) > 1:
        features.append({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": coordinates},
            "properties": {"name": "Route", "type": "route"},
        })
    return {"type": "FeatureCollection", "features": features}


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------

class TransitRouteService:
    """Route resolver backed by the HAFAS REST API."""

    def __init__(self, config=None, session: Optional[requests.Session] = None):
        get = config.get if config is not None else (lambda key, default=None: default)
        self.base_url = get("transit.base_url", "https://v6.db.transport.rest").rstrip("/")
        self.radius = get("transit.nearby_radius", 1000)
        self.timeout = get("transit.request_timeout", 15)
        self.session = session or requests.Session()

    def _get(self, path: str, params: dict):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise RouteSearchError(f"{path} request failed: {e}") from e
        except ValueError as e:
            raise RouteSearchError(f"{path} returned invalid JSON") from e

    def find_nearest_stops(self, latitude: float, longitude: float, results: int = 5) -> List[TransitStop]:
        data = self._get("/locations/nearby", {
            "latitude": latitude,
            "longitude": longitude,
            "results": results,
            "distance": self.radius,
            "stops": "true",
            "poi": "false",
        })
        if not isinstance(data, list):
            raise RouteSearchError("/locations/nearby returned an unexpected shape")
        return [TransitStop.from_json(item) for item in data if isinstance(item, dict)]

    def search_journeys(self, from_stop_id: str, to_stop_id: str,
                        results: int = 3, stopovers: bool = True) -> List[Journey]:
        data = self._get("/journeys", {
            "from": from_stop_id,
            "to": to_stop_id,
            "results": results,
            "stopovers": "true" if stopovers else "false",
        })
        journeys = [Journey.from_json(j) for j in (data or {}).get("journeys") or []]
        logger.info(f"Transit: {len(journeys)} journeys {from_stop_id} -> {to_stop_id}")
        return journeys

    def search(self, origin: Tuple[float, float], destination: Tuple[float, float],
               num_results: int = 3) -> RouteSearchResult:
        """Nearest stop on each end, then journeys between them."""
        from_stops = self.find_nearest_stops(*origin)
        if not from_stops:
            raise RouteSearchError("No public transport stops near the origin")
        to_stops = self.find_nearest_stops(*destination)
        if not to_stops:
            raise RouteSearchError("No public transport stops near the destination")

        journeys = self.search_journeys(from_stops[0].id, to_stops[0].id, results=num_results)
        if not journeys:
            raise RouteSearchError("No route found")
        return RouteSearchResult(journeys, from_stops[0], to_stops[0])
