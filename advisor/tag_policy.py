"""Declarative tag policy: aliases, exclusion sets, fallbacks, and related graph.

Business exceptions live here as data so the engine stages stay generic. The
defaults below can be overridden key-by-key with a JSON file (TAG_POLICY_PATH).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger("advisor.tags")

DEFAULT_ALIASES: Dict[str, str] = {
    "breast cancer": "Cancer Support",
    "prostate cancer": "Cancer Support",
    "chemotherapy": "Cancer Support",
    "insomnia": "Sleep",
    "adaptogens": "Adapt & Thrive",
    "gut": "Gut Health",
    "memory": "Memory & Focus",
    "focus": "Memory & Focus",
    "omega 3": "Omega-3s",
    "fish oil": "Omega-3s",
    "immune": "Immune Support",
    "immunity": "Immune Support",
}

DEFAULT_SUBSTRING_ALIASES: List[Tuple[str, str]] = [
    ("cancer", "Cancer Support"),
]

DEFAULT_SERVICE_BLOCKLIST: List[str] = [
    "Cancer Support",
]

DEFAULT_SERVICE_FALLBACKS: List[str] = [
    "Energy Healing",
    "Bodywork",
    "Stress",
]

DEFAULT_FOOTER_DENYLIST: List[str] = [
    "Services",
    "Supplements",
    "Gifts",
    "Gift Cards",
    "Gifts For Her",
    "Gifts for Her",
    "Clothing",
    "T-shirts",
    "Unisex",
    "Jewelry",
    "Home Decor",
    "Wall Tapestries",
    "Notebooks/Journals",
    "Recorded Meditations",
    "Personal Care",
]

DEFAULT_RELATED_GRAPH: Dict[str, List[str]] = {
    "Anxiety": ["Stress", "Sleep", "Mood", "Magnesium", "Brain", "Adapt & Thrive"],
    "Sleep": ["Anxiety", "Stress", "Magnesium", "Mood"],
    "Stress": ["Anxiety", "Sleep", "Adapt & Thrive", "Magnesium", "Mood"],
    "Digestion": ["Gut Health", "Probiotics", "Enzymes", "Leaky Gut"],
    "Brain": ["Memory & Focus", "Mood", "Omega-3s"],
    "Immune Support": ["Antioxidants"],
    "Detox": ["Heavy Metal Detox", "Liver", "Kidneys"],
    "Cancer Support": ["Immune Support", "Antioxidants", "Stress"],
}


@dataclass(frozen=True)
class RegistryPolicy:
    """Declarative registry entries applied on top of the allow-list."""
    aliases: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ALIASES))
    substring_aliases: List[Tuple[str, str]] = field(
        default_factory=lambda: list(DEFAULT_SUBSTRING_ALIASES)
    )
    service_blocklist: List[str] = field(default_factory=lambda: list(DEFAULT_SERVICE_BLOCKLIST))
    service_fallbacks: List[str] = field(default_factory=lambda: list(DEFAULT_SERVICE_FALLBACKS))
    footer_denylist: List[str] = field(default_factory=lambda: list(DEFAULT_FOOTER_DENYLIST))
    related_graph: Dict[str, List[str]] = field(
        default_factory=lambda: {tag: list(rel) for tag, rel in DEFAULT_RELATED_GRAPH.items()}
    )

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "RegistryPolicy":
        """Purpose: Build a policy from a JSON-style dict, keeping defaults for absent keys.
        Inputs/Outputs: Input is a dict; output is a RegistryPolicy.
        Side Effects / State: Logs and skips keys with the wrong shape.
        Dependencies: Used by load_policy.
        Failure Modes: Never raises for bad shapes; the default for that key is kept.
        If Removed: Policy overrides from disk are impossible.
        Testing Notes: Override one key and confirm the others keep their defaults.
        """
        # Validate each key independently so one bad entry cannot disable the rest.
        base = cls()
        values: Dict[str, object] = {}

        aliases = data.get("aliases")
        if isinstance(aliases, dict):
            values["aliases"] = {str(k): str(v) for k, v in aliases.items()}
        elif aliases is not None:
            logger.warning("tag policy: ignoring malformed aliases")

        substrings = data.get("substring_aliases")
        if isinstance(substrings, dict):
            values["substring_aliases"] = [(str(k), str(v)) for k, v in substrings.items()]
        elif substrings is not None:
            logger.warning("tag policy: ignoring malformed substring_aliases")

        for key in ("service_blocklist", "service_fallbacks", "footer_denylist"):
            entry = data.get(key)
            if isinstance(entry, list):
                values[key] = [str(item) for item in entry]
            elif entry is not None:
                logger.warning("tag policy: ignoring malformed %s", key)

        graph = data.get("related_graph")
        if isinstance(graph, dict):
            values["related_graph"] = {
                str(tag): [str(item) for item in related]
                for tag, related in graph.items()
                if isinstance(related, list)
            }
        elif graph is not None:
            logger.warning("tag policy: ignoring malformed related_graph")

        return cls(
            aliases=values.get("aliases", base.aliases),
            substring_aliases=values.get("substring_aliases", base.substring_aliases),
            service_blocklist=values.get("service_blocklist", base.service_blocklist),
            service_fallbacks=values.get("service_fallbacks", base.service_fallbacks),
            footer_denylist=values.get("footer_denylist", base.footer_denylist),
            related_graph=values.get("related_graph", base.related_graph),
        )


def load_policy(path: Optional[Path]) -> RegistryPolicy:
    """Load a policy override file, falling back to the built-in defaults."""
    if not path:
        return RegistryPolicy()
    if not path.exists():
        logger.warning("tag policy file not found path=%s; using defaults", path)
        return RegistryPolicy()
    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("tag policy file unreadable path=%s error=%s; using defaults", path, exc)
        return RegistryPolicy()
    if not isinstance(data, dict):
        logger.warning("tag policy file must hold a JSON object path=%s; using defaults", path)
        return RegistryPolicy()
    return RegistryPolicy.from_dict(data)
