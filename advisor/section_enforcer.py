"""One canonical link per content section.

Each recognized section (Services, Nutritional Supplements, Articles) ends up with
exactly one link into its own collection, placed on its own line right after the
heading. Every other link into that collection is removed from the document, so
running the stage twice gives the same text as running it once.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Set

from .links import Collection, LinkMatch, iter_store_links, render_link
from .placeholders import resolve_collection_tag
from .tag_registry import TagRegistry

logger = logging.getLogger("advisor.links")

_HEADING_PREFIX = r"^\s*(?P<hash>#{1,6}\s+)?(?:[-*]\s+)?(?P<bold>\*\*|__)?\s*"
_HEADING_SUFFIX = r"(?![^\W_])\s*(?P<colon1>:)?\s*(?:\*\*|__)?\s*(?P<colon2>:)?"

# Any bold or markdown heading line closes the previous section.
ANY_HEADING_RE = re.compile(
    r"^\s*(?:#{1,6}\s+\S|(?:[-*]\s+)?(?:\*\*|__)[^*_\n]+(?:\*\*|__)\s*:?)"
)

_EMPTY_PARENS_RE = re.compile(r"\(\s*\)|\[\s*\]")
_SPACE_BEFORE_PUNCT_RE = re.compile(r"[ \t]+([.,;:!?])")
_MULTI_SPACE_RE = re.compile(r"(?<=\S)[ \t]{2,}")
_LEFTOVER_RE = re.compile(r"[\s\-*•>:.,;]*")

MAX_ROUNDS = 4


@dataclass(frozen=True)
class SectionRule:
    """Heading pattern and the collection its single link points into."""
    name: str
    collection: Collection
    heading: Pattern[str]


def _heading_re(name_pattern: str) -> Pattern[str]:
    return re.compile(_HEADING_PREFIX + r"(?:" + name_pattern + r")" + _HEADING_SUFFIX, re.IGNORECASE)


SECTIONS: List[SectionRule] = [
    SectionRule("services", Collection.SERVICES, _heading_re(r"Services")),
    SectionRule("supplements", Collection.SUPPLEMENTS, _heading_re(r"(?:Nutritional\s+)?Supplements")),
    SectionRule("articles", Collection.ARTICLES, _heading_re(r"(?:Related\s+)?Articles")),
]


def find_heading(lines: List[str], section: SectionRule) -> Optional[int]:
    """Purpose: Locate the first line that is a heading for the given section.
    Inputs/Outputs: Inputs are text lines and a SectionRule; output is a line index or None.
    Side Effects / State: None.
    Dependencies: SectionRule.heading.
    Failure Modes: Plain prose starting with the section name is not a heading unless
        it is bold, hashed, colon-terminated, or the whole line.
    If Removed: Sections cannot be located and no link is enforced.
    Testing Notes: "**Services:**", "## Services", "Services:" match; "Services we offer" does not.
    """
    for index, line in enumerate(lines):
        match = section.heading.match(line)
        if not match:
            continue
        rest = line[match.end():].strip()
        marked = match.group("hash") or match.group("bold") or match.group("colon1") or match.group("colon2")
        if marked or not rest:
            return index
    return None


def section_end(lines: List[str], heading_index: int) -> int:
    for index in range(heading_index + 1, len(lines)):
        if ANY_HEADING_RE.match(lines[index]):
            return index
    return len(lines)


def _line_of(text: str, position: int) -> int:
    return text.count("\n", 0, position)


def _clean_line(line: str) -> str:
    line = _EMPTY_PARENS_RE.sub("", line)
    line = _SPACE_BEFORE_PUNCT_RE.sub(r"\1", line)
    line = _MULTI_SPACE_RE.sub(" ", line)
    return line.rstrip()


def remove_links(text: str, links: List[LinkMatch]) -> str:
    """Cut link spans out of text; lines left with nothing meaningful are dropped."""
    if not links:
        return text
    pieces: List[str] = []
    touched: Set[int] = set()
    cursor = 0
    for link in links:
        pieces.append(text[cursor : link.start])
        touched.add(_line_of(text, link.start))
        cursor = link.end
    pieces.append(text[cursor:])

    # Link spans never contain newlines, so line numbers are unchanged by the cut.
    lines = "".join(pieces).split("\n")
    kept: List[str] = []
    for index, line in enumerate(lines):
        if index in touched:
            line = _clean_line(line)
            if _LEFTOVER_RE.fullmatch(line):
                continue
        kept.append(line)
    return "\n".join(kept)


def _section_tag(
    text: str,
    links: List[LinkMatch],
    section: SectionRule,
    heading_index: int,
    end_index: int,
    preferred_tag: Optional[str],
    registry: TagRegistry,
) -> Optional[str]:
    # Links inside the section are consulted first, then the rest of the document.
    inside = [link for link in links if heading_index <= _line_of(text, link.start) < end_index]
    outside = [link for link in links if link not in inside]
    for link in inside + outside:
        tag = resolve_collection_tag(registry, section.collection, link.raw_tag, preferred_tag, fallback=False)
        if tag:
            return tag
    return resolve_collection_tag(registry, section.collection, None, preferred_tag)


def enforce_section(text: str, section: SectionRule, preferred_tag: Optional[str], registry: TagRegistry) -> str:
    lines = text.split("\n")
    heading_index = find_heading(lines, section)
    if heading_index is None:
        return text

    links = [link for link in iter_store_links(text) if link.collection is section.collection]
    tag = _section_tag(
        text, links, section, heading_index, section_end(lines, heading_index), preferred_tag, registry
    )

    lines = remove_links(text, links).split("\n")
    heading_index = find_heading(lines, section)
    if heading_index is None:
        return "\n".join(lines)
    if tag:
        lines.insert(heading_index + 1, render_link(section.collection, tag))
    logger.debug(
        "section enforced section=%s removed=%d tag=%s",
        section.name,
        len(links),
        tag,
    )
    return "\n".join(lines)


def enforce_one_link_per_section(text: str, preferred_tag: Optional[str], registry: TagRegistry) -> str:
    """Purpose: Guarantee each recognized section carries exactly one canonical link.
    Inputs/Outputs: Inputs are reply text, preferred tag, and registry; output is text.
    Side Effects / State: Debug logging per section.
    Dependencies: enforce_section for each entry in SECTIONS.
    Failure Modes: Never raises; sections without a resolvable tag keep prose only.
    If Removed: Duplicate or conflicting section links reach the user.
    Testing Notes: Idempotent; f(f(x)) == f(x) for any text.
    """
    # Removing a link can expose a heading an earlier pass already skipped, so the
    # passes repeat until the text is stable.
    if not text:
        return text
    for _round in range(MAX_ROUNDS):
        previous = text
        for section in SECTIONS:
            text = enforce_section(text, section, preferred_tag, registry)
        if text == previous:
            return text
    logger.warning("section enforcement did not settle rounds=%d", MAX_ROUNDS)
    return text
