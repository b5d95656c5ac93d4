"""Shared fixtures for the wellness advisor test suite.

The generator is always mocked; registries are built from small in-test allow-lists
so expected links can be pinned exactly.
"""

import os
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# advisor.app builds its module-level app on import; keep that offline.
os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ["GEMINI_AUTO_SELECT"] = "false"

from advisor.config import Settings
from advisor.link_engine import LinkEngine
from advisor.tag_policy import RegistryPolicy
from advisor.tag_registry import TagRegistry

PROJECT_ROOT = Path(__file__).resolve().parent.parent
PROMPTS_DIR = PROJECT_ROOT / "advisor" / "prompts"

STORE = "https://shop.healthandlight.com"
SERVICES = f"{STORE}/collections/services?filter.p.tag="
SUPPLEMENTS = f"{STORE}/collections/nutritional-supplements?filter.p.tag="
ALL = f"{STORE}/collections/all?filter.p.tag="
ARTICLES = f"{STORE}/blogs/news/tagged/"

WELLNESS_TAGS = [
    "Sleep",
    "Anxiety",
    "Stress",
    "Brain",
    "Mood",
    "Magnesium",
    "Cancer Support",
    "Energy Healing",
    "Bodywork",
    "Adapt & Thrive",
    "Gut Health",
    "Digestion",
    "Gifts",
]


# =============================================================================
# REGISTRY / ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def registry():
    """Registry over WELLNESS_TAGS with the built-in policy."""
    return TagRegistry(WELLNESS_TAGS, RegistryPolicy())


@pytest.fixture
def engine(registry):
    """Engine without featured services."""
    return LinkEngine(registry)


@pytest.fixture
def small_engine():
    """Engine over the three-tag vocabulary used in the end-to-end scenario."""
    return LinkEngine(TagRegistry(["Sleep", "Anxiety", "Stress"], RegistryPolicy()))


@pytest.fixture
def empty_engine():
    return LinkEngine(TagRegistry.build(None))


# =============================================================================
# SETTINGS / GENERATOR FIXTURES
# =============================================================================

@pytest.fixture
def settings(tmp_path):
    tags_file = tmp_path / "tags_unique.json"
    tags_file.write_text('["Sleep", "Anxiety", "Stress"]', encoding="utf-8")
    return Settings(
        gemini_api_key="test-key",
        gemini_model="gemini-2.5-flash",
        gemini_auto_select=False,
        temperature=0.5,
        max_output_tokens=1024,
        tags_path=tags_file,
        tag_policy_path=None,
        prompts_dir=PROMPTS_DIR,
        footer_limit=8,
        history_scan_limit=12,
        watsu_url=None,
        port=10000,
    )


@pytest.fixture
def mock_gemini():
    """GeminiClient stand-in; set generate_reply.return_value per test."""
    client = MagicMock()
    client.model_name = "gemini-test"
    client.select_model.return_value = "gemini-test"
    return client
