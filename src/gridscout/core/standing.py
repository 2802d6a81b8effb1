"""Standing hint classification (core domain).

The scout client reports a free-text standing hint per pilot, e.g.
"Pilot is in your alliance". Rules are checked in order; the first match
decides the display tag and whether the pilot counts as friendly.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import List, Tuple

FRIENDLY = "friendly"
HOSTILE = "hostile"
UNKNOWN = "unknown"


@dataclass(frozen=True)
class StandingTag:
    """Resolved standing for one hint string."""

    normalized_hint: str
    precedence: int
    is_friendly: bool
    classification: str


# (pattern, is_friendly); the last rule is the "no standing" fallback.
_RULES: List[Tuple[re.Pattern, bool]] = [
    (re.compile(r"at war with you|at war with your"), False),
    (re.compile(r"terrible standing|horrible standing"), False),
    (re.compile(r"bad standing"), False),
    (re.compile(r"in your fleet|in your gang"), True),
    (re.compile(r"in your capsuleer corporation|in your corporation"), True),
    (re.compile(r"in your alliance"), True),
    (re.compile(r"good standing"), True),
    (re.compile(r"excellent standing"), True),
    (re.compile(r"security status below -5"), False),
    (re.compile(r"security status below 0"), False),
    (re.compile(r""), False),
]

_NO_STANDING_INDEX = len(_RULES) - 1


def resolve_standing_hint(standing_hint: str) -> StandingTag:
    """Resolve a standing hint into a consistent tag and friendly flag."""

    normalized = str(standing_hint or "").strip().lower()
    for index, (pattern, is_friendly) in enumerate(_RULES):
        if pattern.search(normalized):
            break

    if is_friendly:
        classification = FRIENDLY
    elif index == _NO_STANDING_INDEX:
        classification = UNKNOWN
    else:
        classification = HOSTILE

    return StandingTag(
        normalized_hint=normalized,
        precedence=index,
        is_friendly=is_friendly,
        classification=classification,
    )


def is_friendly(standing_hint: str) -> bool:
    return resolve_standing_hint(standing_hint).is_friendly
