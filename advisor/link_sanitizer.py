from __future__ import annotations

import logging
from typing import List, Optional

from .links import ARTICLES_FALLBACK_SLUG, Collection, collection_base, collection_url, iter_store_links, link_label
from .placeholders import resolve_collection_tag
from .tag_registry import TagRegistry

logger = logging.getLogger("advisor.links")


def repaired_url(collection: Collection, tag: Optional[str]) -> str:
    """URL for a validated tag, or the neutered collection URL when there is none."""
    if tag:
        return collection_url(collection, tag)
    if collection is Collection.ARTICLES:
        return f"{collection_base(collection)}/{ARTICLES_FALLBACK_SLUG}"
    return collection_base(collection)


def sanitize_links(text: str, preferred_tag: Optional[str], registry: TagRegistry) -> str:
    """Purpose: Validate and rewrite raw storefront links the generator wrote itself.
    Inputs/Outputs: Inputs are reply text, preferred tag, and registry; output is text.
    Side Effects / State: Debug logging of every rewritten link.
    Dependencies: iter_store_links, resolve_collection_tag, link_label.
    Failure Modes: Never raises; unresolvable links are neutered, not removed.
    If Removed: Invented or blocklisted tags in raw links reach the user.
    Testing Notes: Bad services tag -> preferred tag; bad slug -> fallback slug.
    """
    # Rebuild the text from left to right, replacing only the link spans.
    if not text:
        return text
    pieces: List[str] = []
    cursor = 0
    for link in iter_store_links(text):
        tag = resolve_collection_tag(registry, link.collection, link.raw_tag, preferred_tag)
        url = repaired_url(link.collection, tag)
        if link.is_markdown:
            replacement = f"[{link_label(link.collection, tag)}]({url})"
        else:
            replacement = url
        if url != link.url:
            logger.debug(
                "raw link repaired collection=%s raw_tag=%s tag=%s",
                link.collection.value,
                link.raw_tag,
                tag,
            )
        pieces.append(text[cursor : link.start])
        pieces.append(replacement)
        cursor = link.end
    pieces.append(text[cursor:])
    return "".join(pieces)
