"""Related-category footer ("Shop by category") expansion and rendering."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from .links import Collection, render_link
from .tag_extractor import TagExtractor
from .tag_registry import TagRegistry

logger = logging.getLogger("advisor.footer")

FOOTER_HEADING = "**Shop by category:**"
DEFAULT_FOOTER_LIMIT = 8


def _unique(tags: Iterable[Optional[str]]) -> List[str]:
    out: List[str] = []
    for tag in tags:
        if tag and tag not in out:
            out.append(tag)
    return out


def footer_sort_key(tag: str):
    return (tag.casefold(), tag)


class RelatedTagExpander:
    """Build the deterministic related-categories footer for one reply."""

    def __init__(self, registry: TagRegistry, extractor: TagExtractor) -> None:
        self._registry = registry
        self._extractor = extractor

    def historical_tags(self, user_messages: Sequence[str], scan_limit: int = 12) -> List[str]:
        """Tags mentioned across the most recent user messages, in order of first mention."""
        if scan_limit <= 0:
            return []
        recent = list(user_messages)[-scan_limit:]
        return _unique(tag for message in recent for tag in self._extractor.extract(message))

    def expand_footer(
        self,
        preferred_tag: Optional[str],
        historical_tags: Sequence[str],
        reply_text: str,
        limit: int = DEFAULT_FOOTER_LIMIT,
    ) -> List[str]:
        """Purpose: Choose the footer tags for a reply.
        Inputs/Outputs: Inputs are preferred tag, tags from user history, reply text, and
            a cap; output is a sorted, deduplicated list of canonical tags.
        Side Effects / State: Debug logging of the chosen source.
        Dependencies: TagRegistry.related/is_footer_denied and TagExtractor.extract.
        Failure Modes: Returns [] when nothing survives filtering or limit <= 0.
        If Removed: Replies lose the "Shop by category" block.
        Testing Notes: Same inputs always yield the same ordering.
        """
        # Preferred tag and its graph neighbors, else history, else the reply itself.
        if limit <= 0 or self._registry.is_empty:
            return []
        preferred = self._registry.normalize(preferred_tag)
        if preferred:
            source = "preferred"
            candidates = _unique([preferred, *self._registry.related(preferred)])
        else:
            source = "history"
            candidates = _unique(self._registry.normalize(tag) for tag in historical_tags)
            if not self._allowed(candidates):
                source = "reply"
                candidates = self._extractor.extract(reply_text)

        tags = self._allowed(candidates)[:limit]
        logger.debug("footer source=%s tags=%s", source, tags)
        return sorted(tags, key=footer_sort_key)

    def _allowed(self, candidates: Iterable[str]) -> List[str]:
        return [
            tag
            for tag in _unique(candidates)
            if self._registry.contains(tag) and not self._registry.is_footer_denied(tag)
        ]


def render_footer(tags: Sequence[str]) -> str:
    """Render footer tags as a bulleted list of links to the all-products collection."""
    if not tags:
        return ""
    lines = [f"- {render_link(Collection.ALL, tag)}" for tag in tags]
    return f"{FOOTER_HEADING}\n" + "\n".join(lines)


def append_footer(text: str, tags: Sequence[str]) -> str:
    """Append the footer, replacing any footer block already at the end of text."""
    footer = render_footer(tags)
    if not footer:
        return text
    if text and FOOTER_HEADING in text:
        text = text[: text.rindex(FOOTER_HEADING)]
    if not text:
        return footer
    return f"{text.rstrip()}\n\n{footer}"
