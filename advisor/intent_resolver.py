"""Preferred-tag resolution for the current conversational turn."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Sequence

from .tag_extractor import TagExtractor
from .tag_registry import TagRegistry

logger = logging.getLogger("advisor.intent")


@dataclass(frozen=True)
class KeywordRule:
    """Synonym pattern mapped to the tag text it stands for."""
    name: str
    pattern: Pattern[str]
    target: str


# Priority order: the first matching rule with an allow-listed target wins.
DEFAULT_KEYWORD_RULES: List[KeywordRule] = [
    KeywordRule(
        "sleep",
        re.compile(
            r"\b(insomnia|trouble\s+sleeping|can'?t\s+sleep|cannot\s+sleep|sleepless|waking\s+up\s+at\s+night)\b",
            re.IGNORECASE,
        ),
        "Sleep",
    ),
    KeywordRule("anxiety", re.compile(r"\b(anxious|anxiousness|panic|panicky|nervous|worried)\b", re.IGNORECASE), "Anxiety"),
    KeywordRule("stress", re.compile(r"\b(stressed|overwhelmed|burn(?:ed|t)?\s*out|tense)\b", re.IGNORECASE), "Stress"),
    KeywordRule(
        "brain",
        re.compile(r"\b(brain\s*fog|foggy|focus|concentrat\w*|memory|forgetful)\b", re.IGNORECASE),
        "Brain",
    ),
    KeywordRule("mood", re.compile(r"\b(low\s+mood|irritable|moody|feeling\s+(?:down|blue))\b", re.IGNORECASE), "Mood"),
    KeywordRule(
        "cancer",
        re.compile(r"\b(cancer\w*|tumou?rs?|chemo\w*|oncolog\w*|radiation\s+therapy|remission)\b", re.IGNORECASE),
        "cancer",
    ),
]


class IntentResolver:
    """Derive the single preferred tag from the latest user utterance."""

    def __init__(
        self,
        registry: TagRegistry,
        extractor: TagExtractor,
        rules: Optional[Sequence[KeywordRule]] = None,
    ) -> None:
        self._registry = registry
        self._extractor = extractor
        self._rules = tuple(DEFAULT_KEYWORD_RULES if rules is None else rules)

    def resolve_turn_tag(self, message: str) -> Optional[str]:
        """Purpose: Pick the preferred tag for this turn.
        Inputs/Outputs: Input is the latest user message; output is a canonical tag or None.
        Side Effects / State: Debug logging only.
        Dependencies: TagExtractor first, then keyword rules canonicalized via the registry.
        Failure Modes: Returns None on empty input, empty registry, or no match.
        If Removed: Placeholders and sections lose their fallback tag.
        Testing Notes: A literal tag beats any rule; "trouble sleeping" -> Sleep.
        """
        # Literal tag mentions take precedence over synonym rules.
        if not message or self._registry.is_empty:
            return None
        direct = self._extractor.first(message)
        if direct:
            logger.debug("preferred tag via extractor tag=%s", direct)
            return direct
        for rule in self._rules:
            if not rule.pattern.search(message):
                continue
            tag = self._registry.canonicalize(rule.target)
            if tag:
                logger.debug("preferred tag via rule=%s tag=%s", rule.name, tag)
                return tag
        return None
