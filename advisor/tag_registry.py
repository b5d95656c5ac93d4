"""Immutable registry of canonical store tags and their derived lookups.

Built once at start-up from the allow-list plus a RegistryPolicy. Every stage of the
link engine reads from it; nothing writes to it after construction, so a single
instance is shared safely across concurrent requests.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import unquote

from .links import slugify
from .tag_policy import RegistryPolicy
from .tag_source import validate_allow_list

logger = logging.getLogger("advisor.tags")


def tag_key(text: str) -> str:
    """Case-insensitive lookup key with whitespace collapsed."""
    return " ".join((text or "").split()).lower()


class TagRegistry:
    """Canonical tag vocabulary with alias, exclusion, fallback, and graph lookups."""

    def __init__(self, allow_list: Iterable[str] = (), policy: Optional[RegistryPolicy] = None) -> None:
        """Purpose: Derive every lookup structure from the allow-list and policy.
        Inputs/Outputs: Inputs are the ordered allow-list and an optional policy.
        Side Effects / State: Freezes all derived structures on the instance.
        Dependencies: Uses tag_key for case-insensitive lookups.
        Failure Modes: Policy entries naming unknown tags are dropped and logged.
        If Removed: No stage can validate or canonicalize tags.
        Testing Notes: Build with a small allow-list and check each lookup.
        """
        policy = policy or RegistryPolicy()

        # Storage is case-sensitive; the first spelling of a key wins lookups.
        ordered: List[str] = []
        seen = set()
        lower_map: Dict[str, str] = {}
        for tag in allow_list:
            if tag in seen:
                continue
            seen.add(tag)
            ordered.append(tag)
            lower_map.setdefault(tag_key(tag), tag)
        self._tags: Tuple[str, ...] = tuple(ordered)
        self._tag_set: FrozenSet[str] = frozenset(ordered)
        self._lower_map: Mapping[str, str] = MappingProxyType(lower_map)

        slug_map: Dict[str, str] = {}
        for tag in ordered:
            slug = slugify(tag)
            if slug:
                slug_map.setdefault(slug, tag)
        self._slug_map: Mapping[str, str] = MappingProxyType(slug_map)

        aliases: Dict[str, str] = {}
        for alias, target in policy.aliases.items():
            canonical = self.normalize(target)
            if canonical:
                aliases[tag_key(alias)] = canonical
        self._aliases: Mapping[str, str] = MappingProxyType(aliases)

        substrings: List[Tuple[str, str]] = []
        for needle, target in policy.substring_aliases:
            canonical = self.normalize(target)
            if canonical and needle.strip():
                substrings.append((needle.strip().lower(), canonical))
        self._substring_aliases: Tuple[Tuple[str, str], ...] = tuple(substrings)

        self._service_blocklist: FrozenSet[str] = frozenset(
            tag for tag in (self.normalize(item) for item in policy.service_blocklist) if tag
        )
        self._footer_denylist: FrozenSet[str] = frozenset(tag_key(item) for item in policy.footer_denylist)

        fallbacks: List[str] = []
        for item in policy.service_fallbacks:
            canonical = self.normalize(item)
            if canonical and canonical not in self._service_blocklist and canonical not in fallbacks:
                fallbacks.append(canonical)
        self._service_fallbacks: Tuple[str, ...] = tuple(fallbacks)

        related: Dict[str, Tuple[str, ...]] = {}
        for tag, neighbors in policy.related_graph.items():
            canonical = self.normalize(tag)
            if not canonical:
                continue
            kept: List[str] = []
            for neighbor in neighbors:
                resolved = self.normalize(neighbor)
                if resolved and resolved != canonical and resolved not in kept:
                    kept.append(resolved)
            related[canonical] = tuple(kept)
        self._related: Mapping[str, Tuple[str, ...]] = MappingProxyType(related)

        logger.debug(
            "tag registry built tags=%d aliases=%d substring_aliases=%d blocklist=%d fallbacks=%d graph=%d",
            len(self._tags),
            len(self._aliases),
            len(self._substring_aliases),
            len(self._service_blocklist),
            len(self._service_fallbacks),
            len(self._related),
        )

    @classmethod
    def build(cls, allow_list: object, policy: Optional[RegistryPolicy] = None) -> "TagRegistry":
        """Build from an untrusted value; anything but a list of strings yields an empty registry."""
        tags = validate_allow_list(allow_list)
        if not tags:
            logger.warning("tag registry is empty; tag links and footer are disabled")
        return cls(tags, policy)

    @property
    def tags(self) -> Tuple[str, ...]:
        return self._tags

    @property
    def is_empty(self) -> bool:
        return not self._tags

    def __len__(self) -> int:
        return len(self._tags)

    def contains(self, tag: Optional[str]) -> bool:
        return bool(tag) and tag in self._tag_set

    def normalize(self, text: Optional[str]) -> Optional[str]:
        """Purpose: Map arbitrary text to the canonical spelling of an allow-listed tag.
        Inputs/Outputs: Input is raw text (possibly percent-encoded); output is a tag or None.
        Side Effects / State: None.
        Dependencies: Uses the case-insensitive lower map.
        Failure Modes: Returns None for empty input or unknown tags.
        If Removed: Placeholders and raw links cannot be validated.
        Testing Notes: "sleep", " SLEEP ", and "Adapt%20%26%20Thrive" all resolve.
        """
        if not text:
            return None
        candidate = tag_key(unquote(str(text)))
        return self._lower_map.get(candidate)

    def resolve_alias(self, text: Optional[str]) -> Optional[str]:
        """Resolve via the static alias table, then the substring heuristic."""
        if not text:
            return None
        key = tag_key(unquote(str(text)))
        if key in self._aliases:
            return self._aliases[key]
        for needle, target in self._substring_aliases:
            if needle in key:
                return target
        return None

    def canonicalize(self, text: Optional[str]) -> Optional[str]:
        return self.normalize(text) or self.resolve_alias(text)

    def from_slug(self, text: Optional[str], prefer: Optional[str] = None) -> Optional[str]:
        """Canonical tag whose article slug equals the slug of text, if any.

        Several tags can share one slug ("Omega-3s", "Omega 3s"); prefer names the
        spelling to return when it is one of them.
        """
        if not text:
            return None
        slug = slugify(unquote(str(text)))
        preferred = self.normalize(prefer)
        if preferred and slug and slugify(preferred) == slug:
            return preferred
        return self._slug_map.get(slug)

    def is_service_blocked(self, tag: Optional[str]) -> bool:
        return bool(tag) and tag in self._service_blocklist

    def is_footer_denied(self, tag: Optional[str]) -> bool:
        return bool(tag) and tag_key(tag) in self._footer_denylist

    def service_fallbacks(self) -> Tuple[str, ...]:
        return self._service_fallbacks

    def service_tag(self, tag: Optional[str]) -> Optional[str]:
        """Purpose: Apply the services blocklist to a canonical tag.
        Inputs/Outputs: Input is a canonical tag or None; output is a services-safe tag or None.
        Side Effects / State: None.
        Dependencies: Uses the blocklist and the ordered fallback preference.
        Failure Modes: Returns None when the tag is blocked and no fallback is allow-listed.
        If Removed: Blocklisted tags could reach services links.
        Testing Notes: Blocked tag returns the first allow-listed fallback.
        """
        if not tag or not self.contains(tag):
            return None
        if not self.is_service_blocked(tag):
            return tag
        return self._service_fallbacks[0] if self._service_fallbacks else None

    def related(self, tag: Optional[str]) -> Tuple[str, ...]:
        if not tag:
            return ()
        return self._related.get(tag, ())
