"""Storefront collections, URL templates, and link rendering helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Tuple
from urllib.parse import quote, unquote, unquote_plus

STORE_BASE = "https://shop.healthandlight.com"
TAG_QUERY = "filter.p.tag"
ARTICLES_FALLBACK_SLUG = "wellness"


class Collection(str, Enum):
    """Named destination grouping for a tag-scoped link."""
    SERVICES = "services"
    SUPPLEMENTS = "supplements"
    ARTICLES = "articles"
    ALL = "all"


COLLECTION_PATHS = {
    Collection.SERVICES: "/collections/services",
    Collection.SUPPLEMENTS: "/collections/nutritional-supplements",
    Collection.ALL: "/collections/all",
    Collection.ARTICLES: "/blogs/news/tagged",
}

COLLECTION_LABELS = {
    Collection.SERVICES: "Services",
    Collection.SUPPLEMENTS: "Nutritional Supplements",
    Collection.ARTICLES: "Articles",
    Collection.ALL: "",
}

# Scheme and host are matched loosely so http/www variants are also repaired.
_HOST_RE = r"https?://(?:www\.)?shop\.healthandlight\.com"

QUERY_LINK_RE = re.compile(
    _HOST_RE
    + r"/collections/(?P<coll>services|nutritional-supplements|all)(?![\w-])/?(?![\w/-])"
    + r"(?:\?(?P<query>[^\s)\]<>\"]*))?",
    re.IGNORECASE,
)
ARTICLE_LINK_RE = re.compile(
    _HOST_RE + r"/blogs/news/tagged(?![\w-])(?:/(?P<slug>[^\s)\]<>\"?#/]*))?(?![\w/-])",
    re.IGNORECASE,
)

_PATH_TO_COLLECTION = {
    "services": Collection.SERVICES,
    "nutritional-supplements": Collection.SUPPLEMENTS,
    "all": Collection.ALL,
}


def encode_tag(tag: str) -> str:
    """Percent-encode a tag like encodeURIComponent, but also escape parentheses
    so the URL stays intact inside a markdown link target."""
    return quote(tag, safe="-_.!~*'")


def decode_tag(raw: str) -> str:
    """Decode a query-string tag value; malformed escapes are left as-is."""
    return unquote_plus(raw or "").strip()


def slugify(tag: str) -> str:
    """Purpose: Convert a tag into the blog's tagged-path slug.
    Inputs/Outputs: Input is a tag string; output is a lowercase hyphenated slug.
    Side Effects / State: None; pure function.
    Dependencies: Regex only; used by article links in every stage.
    Failure Modes: Returns an empty string when nothing alphanumeric remains.
    If Removed: Article links cannot be built or regenerated.
    Testing Notes: "Adapt & Thrive" -> "adapt-and-thrive"; "Omega-3s" -> "omega-3s".
    """
    # Lowercase, spell out ampersands, strip symbols, then hyphenate whitespace.
    slug = (tag or "").lower().replace("&", " and ")
    slug = re.sub(r"[^a-z0-9\s-]+", "", slug)
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def unslugify(slug: str) -> str:
    """Best-guess tag name from an article slug (hyphens to spaces, "and" to "&")."""
    words = unquote(slug or "").strip().replace("-", " ").split()
    return " ".join("&" if word.lower() == "and" else word for word in words)


def collection_base(collection: Collection) -> str:
    return STORE_BASE + COLLECTION_PATHS[collection]


def collection_url(collection: Collection, tag: Optional[str] = None) -> str:
    """Purpose: Build the storefront URL for a collection, optionally tag-scoped.
    Inputs/Outputs: Inputs are Collection and an optional canonical tag; output is a URL.
    Side Effects / State: None.
    Dependencies: Uses encode_tag/slugify and the COLLECTION_PATHS table.
    Failure Modes: A missing tag yields the untagged collection URL (neutered link).
    If Removed: No stage can emit storefront links.
    Testing Notes: Services URL carries filter.p.tag; articles URL carries a slug.
    """
    # Articles use a slug path segment; every other collection uses the tag query.
    base = collection_base(collection)
    if not tag:
        return base
    if collection is Collection.ARTICLES:
        return f"{base}/{slugify(tag) or ARTICLES_FALLBACK_SLUG}"
    return f"{base}?{TAG_QUERY}={encode_tag(tag)}"


def link_label(collection: Collection, tag: Optional[str]) -> str:
    suffix = COLLECTION_LABELS[collection]
    if not tag:
        return suffix or "Shop"
    return f"{tag} {suffix}".strip()


def render_link(collection: Collection, tag: Optional[str]) -> str:
    """Render a markdown link for a collection with a human label."""
    return f"[{link_label(collection, tag)}]({collection_url(collection, tag)})"


def collection_from_path(path_segment: str) -> Optional[Collection]:
    return _PATH_TO_COLLECTION.get((path_segment or "").lower())


def tag_from_query(query: Optional[str]) -> Optional[str]:
    """Return the raw (decoded) filter.p.tag value from a query string, if any."""
    if not query:
        return None
    for pair in query.split("&"):
        key, sep, value = pair.partition("=")
        if sep and key.lower() == TAG_QUERY:
            return decode_tag(value)
    return None


# Collection paths must end at a URL boundary; nested product pages are left alone.
STORE_LINK_PATTERN = (
    _HOST_RE
    + r"/(?:collections/(?:services|nutritional-supplements|all)(?![\w-])/?(?![\w/-])(?:\?[^\s)\]<>\"]*)?"
    + r"|blogs/news/tagged(?![\w-])(?:/[^\s)\]<>\"?#/]*)?(?![\w/-]))"
)

# Markdown links are tried first so a bare URL never matches inside one.
LINK_RE = re.compile(
    r"\[(?P<label>[^\[\]\n]*)\]\((?P<target>" + STORE_LINK_PATTERN + r")\)"
    + r"|(?P<bare>" + STORE_LINK_PATTERN + r")",
    re.IGNORECASE,
)

_TRAILING_PUNCT = ".,;:!?'\""


@dataclass(frozen=True)
class LinkMatch:
    """A storefront collection link found in reply text."""
    start: int
    end: int
    collection: Collection
    raw_tag: Optional[str]
    url: str
    label: Optional[str] = None

    @property
    def is_markdown(self) -> bool:
        return self.label is not None


def parse_collection_url(url: str) -> Optional[Tuple[Collection, Optional[str]]]:
    """Purpose: Identify which collection a storefront URL targets and its raw tag.
    Inputs/Outputs: Input is a URL; output is (Collection, raw tag or None) or None.
    Side Effects / State: None.
    Dependencies: QUERY_LINK_RE, ARTICLE_LINK_RE, tag_from_query, unslugify.
    Failure Modes: Returns None for URLs outside the known collections.
    If Removed: Raw links cannot be validated or deduplicated.
    Testing Notes: Article slugs come back as best-guess tag names.
    """
    # Article slugs are reverse-mapped; query collections read filter.p.tag.
    match = QUERY_LINK_RE.fullmatch(url or "")
    if match:
        collection = collection_from_path(match.group("coll"))
        if collection:
            return collection, tag_from_query(match.group("query"))
    match = ARTICLE_LINK_RE.fullmatch(url or "")
    if match:
        slug = match.group("slug") or ""
        return Collection.ARTICLES, (unslugify(slug) if slug else None)
    return None


def iter_store_links(text: str) -> Iterator[LinkMatch]:
    """Yield every storefront collection link in text, markdown or bare, in order."""
    if not text:
        return
    for match in LINK_RE.finditer(text):
        if match.group("target") is not None:
            url = match.group("target")
            start, end, label = match.start(), match.end(), match.group("label")
        else:
            raw = match.group("bare")
            url = raw.rstrip(_TRAILING_PUNCT)
            start, end, label = match.start(), match.start() + len(url), None
        parsed = parse_collection_url(url)
        if not parsed:
            continue
        collection, raw_tag = parsed
        yield LinkMatch(start, end, collection, raw_tag, url, label)
