import pytest

from advisor.section_enforcer import SECTIONS, enforce_one_link_per_section, find_heading
from advisor.tag_registry import TagRegistry

from .conftest import ARTICLES, SERVICES, STORE, SUPPLEMENTS


def _count(text, prefix):
    return text.count(prefix)


class TestFindHeading:
    @pytest.mark.parametrize(
        "line",
        ["**Services:**", "## Services", "Services:", "Services", "- **Services**:", "**Services:** we offer"],
    )
    def test_recognized_services_headings(self, line):
        assert find_heading([line], SECTIONS[0]) == 0

    @pytest.mark.parametrize("line", ["Services we offer are great", "**Featured Service:**"])
    def test_prose_is_not_a_heading(self, line):
        assert find_heading([line], SECTIONS[0]) is None

    def test_supplements_and_articles_variants(self):
        assert find_heading(["intro", "## Nutritional Supplements"], SECTIONS[1]) == 1
        assert find_heading(["Supplements:"], SECTIONS[1]) == 0
        assert find_heading(["__Related Articles__"], SECTIONS[2]) == 0


class TestEnforceOneLinkPerSection:
    def test_duplicates_collapse_to_first_valid_link(self, registry):
        text = (
            "**Services:**\n"
            f"Try a session [Sleep Services]({SERVICES}Sleep) or [Stress Services]({SERVICES}Stress).\n"
            "**Lifestyle & Dietary Recommendations:**\n"
            "- Rest well."
        )

        result = enforce_one_link_per_section(text, None, registry)

        assert result == (
            "**Services:**\n"
            f"[Sleep Services]({SERVICES}Sleep)\n"
            "Try a session or.\n"
            "**Lifestyle & Dietary Recommendations:**\n"
            "- Rest well."
        )

    def test_link_outside_section_is_moved_under_heading(self, registry):
        text = "**Services:**\nBook a session.\n\nAlso see " + f"[Anxiety Services]({SERVICES}Anxiety)"

        result = enforce_one_link_per_section(text, None, registry)

        assert result == f"**Services:**\n[Anxiety Services]({SERVICES}Anxiety)\nBook a session.\n\nAlso see"

    def test_missing_link_is_inserted_from_preferred_tag(self, registry):
        result = enforce_one_link_per_section("**Services:** We offer sessions.", "Sleep", registry)
        assert result == f"**Services:** We offer sessions.\n[Sleep Services]({SERVICES}Sleep)"

    def test_blocked_preferred_tag_uses_service_fallback(self, registry):
        result = enforce_one_link_per_section("## Services\nGentle care.", "Cancer Support", registry)
        assert f"{SERVICES}Energy%20Healing" in result
        assert "Cancer%20Support" not in result

    def test_no_tag_leaves_prose_only(self, registry):
        text = f"**Services:**\nSee {STORE}/collections/services for options."
        result = enforce_one_link_per_section(text, None, registry)
        assert result == "**Services:**\nSee for options."

    def test_without_heading_text_is_unchanged(self, registry):
        text = f"Services we like: [Sleep Services]({SERVICES}Sleep) and [Stress Services]({SERVICES}Stress)"
        assert enforce_one_link_per_section(text, "Sleep", registry) == text

    def test_each_section_gets_its_own_collection(self, registry):
        text = (
            "**Services:**\nBodywork helps.\n"
            "**Nutritional Supplements:**\n"
            f"[Sleep Nutritional Supplements]({SUPPLEMENTS}Sleep) and "
            f"[Stress Nutritional Supplements]({SUPPLEMENTS}Stress)\n"
            "**Related Articles:**\nRead more."
        )

        result = enforce_one_link_per_section(text, "Anxiety", registry)

        assert _count(result, SERVICES) == 1
        assert f"{SERVICES}Anxiety" in result
        assert _count(result, SUPPLEMENTS) == 1
        assert f"{SUPPLEMENTS}Sleep" in result
        assert _count(result, ARTICLES) == 1
        assert f"{ARTICLES}anxiety" in result

    @pytest.mark.parametrize(
        "text, preferred",
        [
            (
                "**Services:**\n"
                f"Try [Sleep Services]({SERVICES}Sleep), or [Stress Services]({SERVICES}Stress) ( ).\n"
                "**Nutritional Supplements:** "
                f"{SUPPLEMENTS}Anxiety and {SUPPLEMENTS}Sleep.\n"
                "## Articles\n"
                f"- [Read]({ARTICLES}adapt-and-thrive)\n"
                f"- [More]({ARTICLES}adapt-and-thrive)",
                None,
            ),
            ("**Services:**\nNothing linked yet.\n**Supplements:**\n", "Mood"),
            ("Services:\n\n\n**Articles:**\nText", "Cancer Support"),
            (f"**Supplements:**\n[Sleep Nutritional Supplements]({SUPPLEMENTS}Sleep) Services:", "Stress"),
        ],
    )
    def test_idempotent(self, registry, text, preferred):
        once = enforce_one_link_per_section(text, preferred, registry)
        twice = enforce_one_link_per_section(once, preferred, registry)
        assert twice == once

    def test_heading_exposed_by_link_removal_is_enforced(self, registry):
        text = f"**Supplements:**\n[Sleep Nutritional Supplements]({SUPPLEMENTS}Sleep) Services:"

        result = enforce_one_link_per_section(text, "Stress", registry)

        assert result.endswith(f" Services:\n[Stress Services]({SERVICES}Stress)")

    def test_underscore_bold_headings(self, registry):
        result = enforce_one_link_per_section("__Services__\nGentle care.", "Sleep", registry)
        assert result == f"__Services__\n[Sleep Services]({SERVICES}Sleep)\nGentle care."

    def test_shared_article_slug_keeps_preferred_spelling(self):
        registry = TagRegistry(["Omega-3s", "Omega 3s"])

        once = enforce_one_link_per_section("**Articles:**\nRead on.", "Omega 3s", registry)

        assert once == f"**Articles:**\n[Omega 3s Articles]({ARTICLES}omega-3s)\nRead on."
        assert enforce_one_link_per_section(once, "Omega 3s", registry) == once
