"""
Team-name collision check for matches named "<home> vs <away>".

Names are lower-cased, trimmed and whitespace-collapsed before splitting on the
"vs" separator; a name without a separator is a single token.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

_SEPARATOR = re.compile(r"\s+vs\.?\s+|^vs\.?\s+|\s+vs\.?$")
_WHITESPACE = re.compile(r"\s+")


def team_tokens(name: str) -> List[str]:
    normalized = _WHITESPACE.sub(" ", (name or "").strip().lower())
    if not normalized:
        return []
    return [t.strip() for t in _SEPARATOR.split(normalized) if t.strip()]


def find_shared_team(name: str, existing_names: Iterable[str]) -> Optional[str]:
    """Return the first team token of ``name`` already used by one of ``existing_names``."""
    new_tokens = team_tokens(name)
    if not new_tokens:
        return None
    for other in existing_names:
        other_tokens = set(team_tokens(other))
        for token in new_tokens:
            if token in other_tokens:
                return token
    return None
