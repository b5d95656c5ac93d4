"""Placeholder tokens emitted by the generator and their conversion into links.

The model is instructed to write ``[ServicesTag: Anxiety]`` instead of raw URLs.
Each token is validated against the registry and rendered as one markdown link,
or removed entirely when no allow-listed tag can be established.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from .links import Collection, render_link
from .tag_registry import TagRegistry

logger = logging.getLogger("advisor.links")

PLACEHOLDER_RE = re.compile(
    r"\[\s*(?P<kind>services|supplements|articles)[ _]?tag\s*:\s*(?P<name>[^\]\n]*)\]",
    re.IGNORECASE,
)

KIND_TO_COLLECTION = {
    "services": Collection.SERVICES,
    "supplements": Collection.SUPPLEMENTS,
    "articles": Collection.ARTICLES,
}


def resolve_collection_tag(
    registry: TagRegistry,
    collection: Collection,
    raw_name: Optional[str],
    preferred_tag: Optional[str],
    fallback: bool = True,
) -> Optional[str]:
    """Purpose: Decide which canonical tag a link into a collection may carry.
    Inputs/Outputs: Inputs are registry, collection, raw tag text, and preferred tag;
        output is an allow-listed tag or None. With fallback off, the preferred
        tag only picks between spellings that share an article slug.
    Side Effects / State: None.
    Dependencies: TagRegistry.canonicalize, from_slug (articles), and service_tag.
    Failure Modes: None; unresolvable or barred tags return None.
    If Removed: Placeholder, sanitizer, and section stages disagree on policy.
    Testing Notes: Unknown name falls back to preferred; blocked services tag falls back.
    """
    # Raw text first, then the turn's preferred tag; services pass the blocklist.
    # Article slugs are matched exactly before any alias can reinterpret them.
    tag = registry.from_slug(raw_name, prefer=preferred_tag) if collection is Collection.ARTICLES else None
    tag = tag or registry.canonicalize(raw_name)
    if not tag and fallback:
        tag = registry.normalize(preferred_tag)
    if tag and collection is Collection.SERVICES:
        tag = registry.service_tag(tag)
    return tag


def resolve_placeholders(text: str, preferred_tag: Optional[str], registry: TagRegistry) -> str:
    """Replace every placeholder token with a validated link or nothing."""
    if not text:
        return text

    def _replace(match: re.Match) -> str:
        collection = KIND_TO_COLLECTION[match.group("kind").lower()]
        name = match.group("name").strip()
        tag = resolve_collection_tag(registry, collection, name, preferred_tag)
        if not tag:
            logger.debug("placeholder dropped kind=%s name=%s", collection.value, name)
            return ""
        if tag != name:
            logger.debug("placeholder remapped kind=%s name=%s tag=%s", collection.value, name, tag)
        return render_link(collection, tag)

    return PLACEHOLDER_RE.sub(_replace, text)
