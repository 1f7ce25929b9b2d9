import logging
import os
from typing import Any, Dict, List

import requests

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _component(components: List[Dict[str, Any]], kind: str, short: bool = False) -> str:
    for c in components:
        if kind in c.get("types", []):
            return c.get("short_name" if short else "long_name") or ""
    return ""


def address_from_components(components: List[Dict[str, Any]]) -> Dict[str, str]:
    street = " ".join(filter(None, [_component(components, "street_number"), _component(components, "route")]))
    return {
        "address": street,
        "city": _component(components, "locality") or _component(components, "postal_town"),
        "state": _component(components, "administrative_area_level_1", short=True),
        "pincode": _component(components, "postal_code"),
    }


def reverse_geocode(latitude: float, longitude: float) -> Dict[str, str]:
    """Look up street address, city, state and pincode for a coordinate pair."""
    api_key = os.getenv("GOOGLE_MAPS_API_KEY")
    if not api_key:
        raise GeocodingError("Location services are not configured on the server.", status_code=503)

    try:
        r = requests.get(GEOCODE_URL, params={"latlng": f"{latitude},{longitude}", "key": api_key}, timeout=10)
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Geocoding request failed: %s", e)
        raise GeocodingError("Failed to connect to location services. Please check your network.") from e

    status = data.get("status")
    if status != "OK":
        logger.error("Geocoding returned %s: %s", status, data.get("error_message"))
        if status == "REQUEST_DENIED":
            raise GeocodingError("Request denied. The API key may be invalid or the Geocoding API is not enabled.")
        raise GeocodingError(data.get("error_message") or f"An error occurred while fetching the address. Status: {status}")

    results = data.get("results") or []
    components = results[0].get("address_components") if results else None
    if not components:
        raise GeocodingError("Geocoding was successful, but no address data was found for your location.", status_code=404)
    return address_from_components(components)
