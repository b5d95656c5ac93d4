from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple

from .tag_registry import TagRegistry

_AMP_PATTERN = r"(?:[\s-]*&[\s-]*|[\s-]+and[\s-]+)"
_SPACE_PATTERN = r"[\s-]+"
_HYPHEN_PATTERN = r"[-\s]?"


def build_tag_pattern(tag: str) -> Pattern[str]:
    """Purpose: Compile a tolerant, word-bounded matcher for one canonical tag.
    Inputs/Outputs: Input is a tag; output is a compiled case-insensitive regex.
    Side Effects / State: None.
    Dependencies: Regex only; used by TagExtractor at construction time.
    Failure Modes: None; every literal character is escaped.
    If Removed: Tags can only be found by exact spelling.
    Testing Notes: "Adapt & Thrive" matches "adapt-and-thrive"; "Sleep" skips "Sleepy".
    """
    # Walk the tag so "&" swallows its surrounding spaces before spaces are handled.
    parts: List[str] = []
    text = tag.strip()
    i = 0
    while i < len(text):
        amp = re.match(r"\s*&\s*", text[i:])
        if amp:
            parts.append(_AMP_PATTERN)
            i += amp.end()
            continue
        char = text[i]
        if char.isspace():
            while i < len(text) and text[i].isspace():
                i += 1
            parts.append(_SPACE_PATTERN)
            continue
        parts.append(_HYPHEN_PATTERN if char == "-" else re.escape(char))
        i += 1
    return re.compile(r"(?<!\w)" + "".join(parts) + r"(?!\w)", re.IGNORECASE)


class TagExtractor:
    """Scan free text for canonical tags, tolerant of orthographic variation."""

    def __init__(self, registry: TagRegistry) -> None:
        self._patterns: Tuple[Tuple[str, Pattern[str]], ...] = tuple(
            (tag, build_tag_pattern(tag)) for tag in registry.tags
        )

    def extract(self, text: str) -> List[str]:
        """Return matching tags in allow-list order, without duplicates."""
        if not text or not self._patterns:
            return []
        return [tag for tag, pattern in self._patterns if pattern.search(text)]

    def first(self, text: str) -> Optional[str]:
        """First matching tag in allow-list order, or None."""
        if not text:
            return None
        for tag, pattern in self._patterns:
            if pattern.search(text):
                return tag
        return None
