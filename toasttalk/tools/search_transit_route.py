"""Tool definition: search_transit_route (public transport between two coordinates)."""

import logging

from toasttalk.errors import LocationUnavailable, RouteSearchError
from toasttalk.location import is_current_location
from toasttalk.tool_registry import ToolOutput
from toasttalk.transit_service import format_route_info, route_geojson

TOOL_NAME = "search_transit_route"

SCHEMA = {
    "type": "function",
    "function": {
        "name": "search_transit_route",
        "description": "Search public transport routes between two points given as coordinates.",
        "parameters": {
            "type": "object",
            "properties": {
                "from_latitude": {"type": "number", "description": "Origin latitude"},
                "from_longitude": {"type": "number", "description": "Origin longitude"},
                "to_latitude": {"type": "number", "description": "Destination latitude"},
                "to_longitude": {"type": "number", "description": "Destination longitude"},
                "num_results": {
                    "type": "integer",
                    "description": "Number of routes to return",
                    "default": 3,
                },
            },
            "required": ["from_latitude", "from_longitude", "to_latitude", "to_longitude"],
        },
    },
}

SYSTEM_PROMPT_RULE = (
    "For route planning or public transport questions, call "
    "search_transit_route. Use -999,-999 for the user's current location."
)

logger = logging.getLogger("toasttalk.tools.search_transit_route")


def _coordinate(args: dict, key: str) -> float:
    value = args.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    return float(value)


def _resolve(location, lat: float, lon: float, which: str):
    if not is_current_location(lat, lon):
        return lat, lon
    logger.info(f"Resolving current location for {which}")
    if location is None:
        raise LocationUnavailable("no location service configured")
    return location.get_current_location()


def journey_payload(index: int, journey, result) -> dict:
    """Full journey data for the presentation layer."""
    legs = []
    for leg in journey.legs:
        leg_data = {
            "walking": leg.walking,
            "distance": leg.distance,
            "origin": leg.origin.to_dict(),
            "destination": leg.destination.to_dict(),
        }
        if leg.line_name or leg.line_mode:
            leg_data["line"] = {"name": leg.line_name or "", "mode": leg.line_mode or ""}
        if leg.departure:
            leg_data["departure"] = leg.departure
        if leg.arrival:
            leg_data["arrival"] = leg.arrival
        if leg.stopovers:
            leg_data["stopovers"] = [
                {"name": s.stop.name, "location": s.stop.to_dict()["location"],
                 "arrival": s.arrival, "departure": s.departure}
                for s in leg.stopovers
            ]
        legs.append(leg_data)

    return {
        "index": index,
        "route_info": format_route_info(journey, result.from_stop, result.to_stop),
        "geojson": route_geojson(journey),
        "departure": journey.departure_time,
        "arrival": journey.arrival_time,
        "legs": legs,
    }


def simplify(journeys: list, total: int) -> dict:
    """Trimmed view that goes into the conversation history."""
    simplified = []
    for journey in journeys:
        modes = []
        for leg in journey["legs"]:
            if leg["walking"]:
                modes.append("walk")
            elif leg.get("line", {}).get("name"):
                modes.append(leg["line"]["name"])
        simplified.append({
            "route_info": journey["route_info"],
            "departure": journey["departure"],
            "arrival": journey["arrival"],
            "transport_modes": modes,
        })
    return {"status": "success", "total_results": total, "journeys": simplified}


def build_handler(context):
    default_results = context.config.get("transit.num_results", 3) if context.config else 3

    def handler(args: dict) -> ToolOutput:
        from_lat = _coordinate(args, "from_latitude")
        from_lon = _coordinate(args, "from_longitude")
        to_lat = _coordinate(args, "to_latitude")
        to_lon = _coordinate(args, "to_longitude")
        num_results = int(args.get("num_results") or default_results)

        origin = _resolve(context.location, from_lat, from_lon, "origin")
        destination = _resolve(context.location, to_lat, to_lon, "destination")

        if context.routes is None:
            raise RouteSearchError("no route service configured")
        result = context.routes.search(origin, destination, num_results)

        journeys = [
            journey_payload(i, journey, result)
            for i, journey in enumerate(result.journeys[:num_results])
        ]
        logger.info(f"Returning {len(journeys)} routes")

        payload = {
            "from_stop": {"name": result.from_stop.name, "distance": result.from_stop.distance,
                          "coordinates": {"lat": origin[0], "lon": origin[1]}},
            "to_stop": {"name": result.to_stop.name, "distance": result.to_stop.distance,
                        "coordinates": {"lat": destination[0], "lon": destination[1]}},
            "journeys": journeys,
            "total_results": len(result.journeys),
        }
        return ToolOutput(simplify(journeys, len(result.journeys)), payload)

    return handler
