"""
Weather tool backed by Open-Meteo (https://open-meteo.com/, no API key).

The model may pass either a place name, which is geocoded first, or explicit
coordinates:

1. **Geocoding**: ``https://geocoding-api.open-meteo.com/v1/search``
2. **Forecast**: ``https://api.open-meteo.com/v1/forecast``

``invoke`` returns a dict, which the dispatcher sends back as a single JSON
tool-result entry.  Lookup failures raise and are reported to the model as
error results.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
_WEATHER_URL = "https://api.open-meteo.com/v1/forecast"

# WMO weather interpretation codes (https://open-meteo.com/en/docs)
_WMO_CONDITIONS: dict[int, str] = {
    0: "Clear sky",
    1: "Mainly clear",
    2: "Partly cloudy",
    3: "Overcast",
    45: "Fog",
    48: "Depositing rime fog",
    51: "Light drizzle",
    53: "Moderate drizzle",
    55: "Dense drizzle",
    61: "Slight rain",
    63: "Moderate rain",
    65: "Heavy rain",
    71: "Slight snow",
    73: "Moderate snow",
    75: "Heavy snow",
    77: "Snow grains",
    80: "Slight rain showers",
    81: "Moderate rain showers",
    82: "Violent rain showers",
    85: "Slight snow showers",
    86: "Heavy snow showers",
    95: "Thunderstorm",
    96: "Thunderstorm with slight hail",
    99: "Thunderstorm with heavy hail",
}


class WeatherTool:
    """Current weather conditions for a place name or a latitude/longitude pair.

    Attributes:
        timeout: HTTP request timeout in seconds.
    """

    name = "get_weather"
    description = (
        "Get current weather conditions for a location. Pass either a place "
        "name or latitude and longitude. Returns temperature (Celsius and "
        "Fahrenheit), sky conditions, relative humidity and wind speed."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "location": {
                "type": "string",
                "description": "City name, 'City, State' or 'City, Country', e.g. 'Paris, France'.",
            },
            "latitude": {"type": "number", "description": "Latitude (-90 to 90)."},
            "longitude": {"type": "number", "description": "Longitude (-180 to 180)."},
        },
    }

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    async def invoke(self, arguments: dict[str, Any]) -> dict[str, Any]:
        latitude = arguments.get("latitude")
        longitude = arguments.get("longitude")
        if latitude is not None and longitude is not None:
            return await self.get_weather_at(float(latitude), float(longitude))

        location = arguments.get("location")
        if not location:
            raise ValueError("Provide either 'location' or both 'latitude' and 'longitude'")
        return await self.get_weather(str(location))

    async def get_weather(self, location: str) -> dict[str, Any]:
        """Geocode *location* and fetch its current conditions.

        Raises:
            ValueError: If the location cannot be geocoded.
            httpx.HTTPStatusError: If either API call returns a non-2xx status.
            httpx.TimeoutException: If a request exceeds ``self.timeout``.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            lat, lon, resolved_name = await self._geocode(client, location)
            return await self._fetch_conditions(client, lat, lon, resolved_name)

    async def get_weather_at(self, latitude: float, longitude: float) -> dict[str, Any]:
        """Fetch current conditions for explicit coordinates."""
        if not -90.0 <= latitude <= 90.0 or not -180.0 <= longitude <= 180.0:
            raise ValueError(f"Coordinates out of range: ({latitude}, {longitude})")
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._fetch_conditions(
                client, latitude, longitude, f"{latitude:.4f}, {longitude:.4f}"
            )

    async def _geocode(
        self, client: httpx.AsyncClient, location: str
    ) -> tuple[float, float, str]:
        logger.debug("Geocoding location: %r", location)
        response = await client.get(
            _GEOCODING_URL,
            params={"name": location, "count": 1, "language": "en", "format": "json"},
        )
        response.raise_for_status()

        results = response.json().get("results")
        if not results:
            raise ValueError(f"Location not found: {location!r}")

        place = results[0]
        parts = [place.get("name", location)]
        parts.extend(p for p in (place.get("admin1"), place.get("country")) if p)
        return place["latitude"], place["longitude"], ", ".join(parts)

    async def _fetch_conditions(
        self,
        client: httpx.AsyncClient,
        lat: float,
        lon: float,
        resolved_name: str,
    ) -> dict[str, Any]:
        logger.debug("Fetching weather for (%.4f, %.4f)", lat, lon)
        response = await client.get(
            _WEATHER_URL,
            params={
                "latitude": lat,
                "longitude": lon,
                "current": "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m",
                "temperature_unit": "celsius",
                "wind_speed_unit": "kmh",
            },
        )
        response.raise_for_status()
        current = response.json()["current"]

        temp_c = current["temperature_2m"]
        wind_kmh = current["wind_speed_10m"]
        code = int(current["weather_code"])
        return {
            "location_name": resolved_name,
            "temperature_c": temp_c,
            "temperature_f": round(temp_c * 9 / 5 + 32, 1),
            "conditions": _WMO_CONDITIONS.get(code, f"Unknown conditions (code {code})"),
            "humidity_percent": int(current["relative_humidity_2m"]),
            "wind_speed_kmh": wind_kmh,
            "wind_speed_mph": round(wind_kmh * 0.621371, 1),
        }
