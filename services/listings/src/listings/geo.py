"""Coordinate extraction from pasted map links."""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Optional, Tuple
from urllib.parse import parse_qs, unquote, urlparse

from common.logging import get_logger

from .models import Coordinates

logger = get_logger(__name__)

_NUMBER = r"(-?\d{1,3}(?:\.\d+)?)"

# ``.../maps/place/Name/@10.8231,106.6297,17z`` and ``.../maps/@lat,lng,zoom``
_AT_PATTERN = re.compile(rf"@{_NUMBER},\s*{_NUMBER}(?:,|z|/|$)")
# Links without a viewport may still carry the pin as ``!3d<lat>!4d<lng>``.
_PIN_PATTERN = re.compile(rf"!3d{_NUMBER}!4d{_NUMBER}")
_PAIR_PATTERN = re.compile(rf"^\s*{_NUMBER}\s*,\s*{_NUMBER}\s*$")
# Short links only succeed when a decimal-degree pair is literally present.
_DECIMAL_PAIR_PATTERN = re.compile(r"(-?\d{1,2}\.\d{3,}),\s*(-?\d{1,3}\.\d{3,})")

_GOOGLE_HOST = re.compile(r"(^|\.)google\.[a-z]{2,3}(\.[a-z]{2})?$")
_QUERY_KEYS = ("q", "query", "ll", "center", "destination")


class LinkShape(str, Enum):
    PLACE = "place"
    MAPS = "maps"
    SHORT = "short"
    UNKNOWN = "unknown"


def _with_scheme(url: str) -> str:
    # Links copied from the address bar often drop the scheme.
    text = url.strip()
    if text and "://" not in text:
        return "https://" + text.lstrip("/")
    return text


def classify(url: str) -> LinkShape:
    """Recognise which of the supported map-link shapes ``url`` is."""

    try:
        parsed = urlparse(_with_scheme(url))
    except ValueError:
        return LinkShape.UNKNOWN
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return LinkShape.UNKNOWN

    host = parsed.hostname.lower()
    path = parsed.path or ""
    if host == "maps.app.goo.gl" or (host == "goo.gl" and path.startswith("/maps")):
        return LinkShape.SHORT
    if not _GOOGLE_HOST.search(host):
        return LinkShape.UNKNOWN
    if path.startswith("/maps/place/"):
        return LinkShape.PLACE
    if host.startswith("maps.") or path.startswith("/maps"):
        return LinkShape.MAPS
    return LinkShape.UNKNOWN


def is_short_link(url: str) -> bool:
    return classify(url) is LinkShape.SHORT


def _valid_pair(lat_text: str, lng_text: str) -> Optional[Coordinates]:
    try:
        latitude = float(lat_text)
        longitude = float(lng_text)
    except ValueError:
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        return None
    return Coordinates(latitude=latitude, longitude=longitude)


def _from_match(match: Optional[re.Match]) -> Optional[Coordinates]:
    if match is None:
        return None
    return _valid_pair(match.group(1), match.group(2))


def _from_query(url: str) -> Optional[Coordinates]:
    params = parse_qs(urlparse(url).query)
    for key in _QUERY_KEYS:
        for value in params.get(key, []):
            coords = _from_match(_PAIR_PATTERN.match(value))
            if coords is not None:
                return coords
    return None


class GeoUrlExtractor:
    """Pure function object: map link in, ``Coordinates`` or ``None`` out.

    Never raises for malformed input; callers treat ``None`` as a
    user-correctable input error.
    """

    def extract(self, url: str) -> Optional[Coordinates]:
        if not url or not isinstance(url, str):
            return None

        shape = classify(url)
        if shape is LinkShape.UNKNOWN:
            logger.debug("map_url_unrecognised", url=url)
            return None

        url = _with_scheme(url)
        text = unquote(url)
        if shape is LinkShape.SHORT:
            coords = _from_match(_DECIMAL_PAIR_PATTERN.search(text))
            if coords is None:
                logger.warning("map_url_short_link_without_coordinates", url=url)
            return coords

        for pattern in (_AT_PATTERN, _PIN_PATTERN):
            coords = _from_match(pattern.search(text))
            if coords is not None:
                return coords
        return _from_query(url)

    def extract_pair(self, url: str) -> Optional[Tuple[float, float]]:
        coords = self.extract(url)
        if coords is None:
            return None
        return (coords.latitude, coords.longitude)


# Singleton instance
geo_url_extractor = GeoUrlExtractor()


def extract_coordinates(url: str) -> Optional[Coordinates]:
    """Module-level shortcut over the shared extractor."""

    return geo_url_extractor.extract(url)


__all__ = [
    "GeoUrlExtractor",
    "LinkShape",
    "classify",
    "extract_coordinates",
    "geo_url_extractor",
    "is_short_link",
]
