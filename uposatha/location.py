"""IP geolocation for the observer position."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Tuple

import requests

from .errors import LocationError

log = logging.getLogger(__name__)

LOOKUP_TIMEOUT = 4

def _ipinfo(data: Dict) -> Tuple[float, float]:
    lat_s, lon_s = data["loc"].split(",")
    return float(lat_s), float(lon_s)

def _ipapi(data: Dict) -> Tuple[float, float]:
    return float(data["latitude"]), float(data["longitude"])

PROVIDERS: Tuple[Tuple[str, Callable[[Dict], Tuple[float, float]]], ...] = (
    ("https://ipinfo.io/json", _ipinfo),
    ("https://ipapi.co/json", _ipapi),
)

def autolocate() -> Tuple[float, float]:
    """``(latitude, longitude)`` from the first provider that answers.

    Raises LocationError once every provider has failed.
    """
    failures = []
    for url, parse in PROVIDERS:
        try:
            response = requests.get(url, timeout=LOOKUP_TIMEOUT)
            response.raise_for_status()
            return parse(response.json())
        except (requests.RequestException, KeyError, TypeError, ValueError) as e:
            log.debug("Location lookup via %s failed: %s", url, e)
            failures.append(f"{url}: {e}")
    raise LocationError("; ".join(failures))
