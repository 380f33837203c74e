"""
Coordinate extraction from free text.

Users paste whatever their map app gives them: a share URL, a URL copied from
the address bar, or just "35.68, 139.85". We try a fixed list of patterns in
priority order and return the first hit:

1. `!3d<lat>!4d<lng>`: the pinned place encoded in the URL data blob. This is
   the point the user actually selected, so it wins over everything else.
2. A bare `<lat>,<lng>` pair. The whole (trimmed) string must be the pair.
3. `@<lat>,<lng>`: the viewport centre. It is only where the map was looking,
   which may be some distance from the named place.

`place/<name>/@<lat>,<lng>` URLs are handled by pattern 3: the `@` fragment is
searched anywhere in the string, so the place prefix needs no pattern of its own.
"""

from __future__ import annotations

import re

from propertylocator.locate.model import Coordinate

_NUMBER = r"-?\d+(?:\.\d+)?"
# URL-embedded values may carry an explicit "+".
_SIGNED_NUMBER = r"[-+]?\d+(?:\.\d+)?"

_PIN_RE = re.compile(rf"!3d(?P<lat>{_SIGNED_NUMBER})!4d(?P<lon>{_SIGNED_NUMBER})")
_BARE_PAIR_RE = re.compile(rf"^(?P<lat>{_NUMBER}), ?(?P<lon>{_NUMBER})$")
_MAP_CENTER_RE = re.compile(rf"@(?P<lat>{_SIGNED_NUMBER}),(?P<lon>{_SIGNED_NUMBER})")

# (name, pattern, anchored) in priority order.
MATCHERS: tuple[tuple[str, re.Pattern[str], bool], ...] = (
    ("pin", _PIN_RE, False),
    ("bare_pair", _BARE_PAIR_RE, True),
    ("map_center", _MAP_CENTER_RE, False),
)


def _to_coordinate(match: re.Match[str]) -> Coordinate | None:
    try:
        return Coordinate(lat=float(match.group("lat")), lon=float(match.group("lon")))
    except (TypeError, ValueError):
        return None


def match_coordinates(text: str | None) -> tuple[str, Coordinate] | None:
    """Like `extract_coordinates`, but also reports which matcher fired."""
    if not isinstance(text, str):
        return None
    value = text.strip()
    if not value:
        return None

    for name, pattern, anchored in MATCHERS:
        match = pattern.fullmatch(value) if anchored else pattern.search(value)
        if match is None:
            continue
        coord = _to_coordinate(match)
        # A matched but unparsable group means "not found", not "try the next pattern".
        if coord is None:
            return None
        return name, coord
    return None


def extract_coordinates(text: str | None) -> Coordinate | None:
    found = match_coordinates(text)
    return found[1] if found is not None else None
