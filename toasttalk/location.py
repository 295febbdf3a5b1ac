"""Location collaborator.

Platform location services are outside this package; the resolver here
answers from configuration (``location.current``) and knows a few named
places the system prompt tells the model about.
"""

import logging
from typing import Dict, Optional, Tuple

from toasttalk.errors import LocationUnavailable

logger = logging.getLogger("toasttalk.location")

Coordinate = Tuple[float, float]

# Reserved pair the model uses for "where I am right now"
CURRENT_LOCATION_SENTINEL: Coordinate = (-999.0, -999.0)


def is_current_location(lat: float, lon: float) -> bool:
    return (lat, lon) == CURRENT_LOCATION_SENTINEL


def _as_coordinate(value) -> Optional[Coordinate]:
    if isinstance(value, dict):
        value = (value.get("latitude"), value.get("longitude"))
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    try:
        return float(value[0]), float(value[1])
    except (TypeError, ValueError):
        return None


class ConfiguredLocationResolver:
    """Answers get_current_location() from config."""

    def __init__(self, config=None, current: Optional[Coordinate] = None):
        self._current = current
        if self._current is None and config is not None:
            self._current = _as_coordinate(config.get("location.current"))
        places = config.get("location.places", {}) if config is not None else {}
        self.places: Dict[str, Coordinate] = {}
        for name, value in places.items():
            coord = _as_coordinate(value)
            if coord is None:
                logger.warning(f"Ignoring malformed place {name!r}: {value!r}")
                continue
            self.places[name] = coord

    def get_current_location(self) -> Coordinate:
        if self._current is None:
            raise LocationUnavailable("current location is not configured (location.current)")
        return self._current

    def update(self, lat: float, lon: float):
        """Let an external location service push a fresh fix."""
        self._current = (float(lat), float(lon))
