"""
Topic rendering for routes and stops.

A topic is what the discussion platform shows for one route or stop. Its
name is derived from the entity's identity so it stays stable across runs;
its title and text come from the same fields the comparators fingerprint,
so a fingerprint change is exactly a rendering change.

Hashtags are neutralised: the platform turns ``#word`` into a tag, so a
space is inserted after any ``#`` that starts a word (``#5`` → ``# 5``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from transit_spine.core.errors import ValidationError
from transit_spine.core.keys import string_to_table_key
from transit_spine.domain.entities import RouteEntity, StopEntity

_HASHTAG = re.compile(r"(?:(?<=\s)|^)#(?=\S)")


@dataclass(frozen=True)
class Topic:
    """Rendered discussion topic; ``category`` is the region id."""

    name: str
    title: str
    text: str
    category: str


def remove_hashtags(text: str | None) -> str | None:
    """Insert a space after every ``#`` at the start of a word."""
    if not text or not text.strip():
        return text
    # repeat until stable: "##a" exposes a second hashtag once split
    previous = None
    while text != previous:
        previous, text = text, _HASHTAG.sub("# ", text)
    return text


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def route_topic(route: RouteEntity) -> Topic:
    """Render a route; titled ``"Short - Long"``, either part may be missing."""
    if _blank(route.id) or _blank(route.region_id) or _blank(route.agency_id):
        raise ValidationError("route topic needs id, region_id and agency_id", value=route.id)
    if _blank(route.short_name) and _blank(route.long_name):
        raise ValidationError(
            f"route {route.id} has neither a short nor a long name",
            field="short_name",
        )

    title = " - ".join(n for n in (route.short_name, route.long_name) if not _blank(n))
    subject = route.long_name if not _blank(route.long_name) else route.short_name
    return Topic(
        name=string_to_table_key(f"route_{route.region_id}_{route.agency_id}_{route.id}"),
        title=remove_hashtags(title) or "",
        text=remove_hashtags(f"Discuss the {subject} route") or "",
        category=route.region_id,
    )


def stop_topic(stop: StopEntity) -> Topic:
    """Render a stop; titled ``"Name (Direction)"``, direction optional."""
    if _blank(stop.id) or _blank(stop.region_id):
        raise ValidationError("stop topic needs id and region_id", value=stop.id)
    if _blank(stop.name):
        raise ValidationError(f"stop {stop.id} has no name", field="name")

    title = stop.name
    if not _blank(stop.direction):
        title += f" ({stop.direction})"
    return Topic(
        name=string_to_table_key(f"stop_{stop.region_id}_{stop.id}"),
        title=remove_hashtags(title) or "",
        text=remove_hashtags(f"Discuss the stop at {title}") or "",
        category=stop.region_id,
    )


__all__ = ["Topic", "remove_hashtags", "route_topic", "stop_topic"]
