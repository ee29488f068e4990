"""Audience classification from event text.

Rules are evaluated in priority order and the first match wins. The order is
part of the behavior:

1. adults: explicit "19 and up" / adults-only markers
2. school-age: explicit 6-11 age ranges and elementary phrasing
3. teens: explicit 12-18 age ranges, middle/high school, teen programs
4. all-ages: broad phrasing ("family friendly", "all ages", "everyone welcome")

Rules keyed on a numeric age range come before the broad all-ages phrasing, so
a listing such as "Teen Robotics (13-17), family friendly open house" resolves
to teens rather than all-ages. Text matching no rule maps to ``unknown``.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Optional

from ..calendar.models import AudienceGroup, AudienceGroupName, CalendarEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudienceRule:
    """One (pattern, category) classification rule."""

    pattern: re.Pattern[str]
    audience: AudienceGroup
    rationale: str


def _group(name: AudienceGroupName, label: str, glyph: str, color: str) -> AudienceGroup:
    return AudienceGroup(group=name, label=label, glyph=glyph, color=color)


ADULTS = _group(AudienceGroupName.ADULTS, "Adults (19+)", "🧑", "#1e40af")
SCHOOL_AGE = _group(AudienceGroupName.SCHOOL_AGE, "Kids (6-11)", "👶", "#059669")
TEENS = _group(AudienceGroupName.TEENS, "Teens (12-18)", "🧒", "#ea580c")
ALL_AGES = _group(AudienceGroupName.ALL_AGES, "All Ages", "👪", "#7c3aed")
UNKNOWN = _group(AudienceGroupName.UNKNOWN, "All Welcome", "🤖", "#6b7280")

DEFAULT_RULES: tuple[AudienceRule, ...] = (
    AudienceRule(
        pattern=re.compile(
            r"Adults?\s*\(19\+?\s*and\s*up\)|Adults?\s*\(19\+\)|Adults?\b.*\b(?:19|only)\b",
            re.IGNORECASE,
        ),
        audience=ADULTS,
        rationale="explicit adult age floor",
    ),
    AudienceRule(
        pattern=re.compile(
            r"Elementary.*\(6[-\s]*11\s*years?\)|Ages?\s*6[-\s]*11|Kids?.*6[-\s]*11"
            r"|elementary.*kids|Summer.*camp.*elementary",
            re.IGNORECASE,
        ),
        audience=SCHOOL_AGE,
        rationale="explicit 6-11 range or elementary program",
    ),
    AudienceRule(
        pattern=re.compile(
            r"Teens?.*\(1[2-8][-\s]*1[3-9]\)|Ages?\s*1[2-7][-\s]*1[3-9]|Teen.*robotics"
            r"|Middle.*School|High.*School",
            re.IGNORECASE,
        ),
        audience=TEENS,
        rationale="explicit 12-18 range or secondary-school program",
    ),
    AudienceRule(
        pattern=re.compile(
            r"All\s*Ages?|Family.*Friendly|Intergenerational|Everyone.*Welcome", re.IGNORECASE
        ),
        audience=ALL_AGES,
        rationale="broad phrasing; must stay after the numeric-range rules",
    ),
)


class AudienceClassifier:
    """Assigns exactly one AudienceGroup to a piece of event text."""

    def __init__(
        self,
        rules: Iterable[AudienceRule] = DEFAULT_RULES,
        fallback: AudienceGroup = UNKNOWN,
    ) -> None:
        self.rules = tuple(rules)
        self.fallback = fallback

    def classify(self, title: Any = "", description: Any = "") -> AudienceGroup:
        """Return the audience of the first matching rule, or the fallback.

        Total: any input, including empty or non-string values, yields a group.
        """
        combined = f"{title or ''} {description or ''}"
        for rule in self.rules:
            if rule.pattern.search(combined):
                return rule.audience
        return self.fallback

    def classify_event(self, event: CalendarEvent) -> AudienceGroup:
        """Classify an event by its title and description."""
        return self.classify(event.title, event.description)

    def get_group(self, name: str) -> Optional[AudienceGroup]:
        """Look up a group's metadata by its value (e.g. ``"teens"``)."""
        for group in self.all_groups():
            if group.group == name:
                return group
        return None

    def all_groups(self) -> list[AudienceGroup]:
        """All groups in rule order, with the fallback last."""
        groups: list[AudienceGroup] = []
        for rule in self.rules:
            if rule.audience not in groups:
                groups.append(rule.audience)
        if self.fallback not in groups:
            groups.append(self.fallback)
        return groups

    def breakdown(self, events: Iterable[CalendarEvent]) -> dict[str, int]:
        """Count events per audience group value."""
        stats = dict(Counter(event.audience_name for event in events))
        logger.debug("Audience breakdown: %s", stats)
        return stats
