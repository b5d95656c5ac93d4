import json

from advisor.tag_policy import RegistryPolicy, load_policy
from advisor.tag_registry import TagRegistry
from advisor.tag_source import TagSource, validate_allow_list


class TestTagRegistry:
    def test_normalize_is_case_and_space_insensitive(self, registry):
        assert registry.normalize("sleep") == "Sleep"
        assert registry.normalize("  SLEEP ") == "Sleep"
        assert registry.normalize("adapt  &  thrive") == "Adapt & Thrive"
        assert registry.normalize("Adapt%20%26%20Thrive") == "Adapt & Thrive"
        assert registry.normalize("Not A Tag") is None
        assert registry.normalize(None) is None

    def test_first_spelling_wins_for_lookups(self):
        registry = TagRegistry(["Sleep", "Sleep", "sleep"])
        assert registry.tags == ("Sleep", "sleep")
        assert registry.normalize("SLEEP") == "Sleep"

    def test_aliases_resolve_to_allow_listed_targets(self, registry):
        assert registry.resolve_alias("Breast Cancer") == "Cancer Support"
        assert registry.resolve_alias("insomnia") == "Sleep"
        assert registry.resolve_alias("my cancer journey") == "Cancer Support"
        assert registry.canonicalize("adaptogens") == "Adapt & Thrive"

    def test_alias_to_unknown_tag_is_dropped(self):
        registry = TagRegistry(["Sleep"], RegistryPolicy())
        assert registry.resolve_alias("breast cancer") is None
        assert registry.resolve_alias("memory") is None

    def test_service_tag_applies_blocklist_and_fallback(self, registry):
        assert registry.service_tag("Sleep") == "Sleep"
        assert registry.is_service_blocked("Cancer Support")
        assert registry.service_tag("Cancer Support") == "Energy Healing"
        assert registry.service_tag("Unknown") is None

    def test_blocked_tag_without_fallback(self):
        registry = TagRegistry(["Cancer Support", "Sleep"], RegistryPolicy())
        assert registry.service_fallbacks() == ()
        assert registry.service_tag("Cancer Support") is None

    def test_footer_denylist_is_case_insensitive(self, registry):
        assert registry.is_footer_denied("Gifts")
        assert registry.is_footer_denied("gifts")
        assert not registry.is_footer_denied("Sleep")

    def test_related_graph_is_filtered_to_allow_list(self, registry):
        assert registry.related("Sleep") == ("Anxiety", "Stress", "Magnesium", "Mood")
        assert registry.related("Gifts") == ()

    def test_from_slug(self, registry):
        assert registry.from_slug("adapt-and-thrive") == "Adapt & Thrive"
        assert registry.from_slug("Adapt & Thrive") == "Adapt & Thrive"
        assert registry.from_slug("no-such-tag") is None

    def test_from_slug_prefers_given_spelling_on_shared_slug(self):
        registry = TagRegistry(["Omega-3s", "Omega 3s"])
        assert registry.from_slug("omega-3s") == "Omega-3s"
        assert registry.from_slug("omega-3s", prefer="omega 3s") == "Omega 3s"
        assert registry.from_slug("omega-3s", prefer="Sleep") == "Omega-3s"

    def test_build_rejects_malformed_allow_lists(self):
        assert TagRegistry.build({"Sleep": 1}).is_empty
        assert TagRegistry.build("Sleep").is_empty
        assert TagRegistry.build(["Sleep", 3]).is_empty
        assert TagRegistry.build(None).is_empty
        assert len(TagRegistry.build(["Sleep", " ", "Stress"])) == 2

    def test_empty_registry_answers_nothing(self):
        registry = TagRegistry.build([])
        assert registry.normalize("Sleep") is None
        assert registry.canonicalize("insomnia") is None
        assert registry.service_tag("Sleep") is None


class TestTagPolicy:
    def test_from_dict_overrides_only_given_keys(self):
        policy = RegistryPolicy.from_dict({"service_blocklist": ["Sleep"], "aliases": {"zzz": "Sleep"}})
        assert policy.service_blocklist == ["Sleep"]
        assert policy.aliases == {"zzz": "Sleep"}
        assert policy.service_fallbacks == RegistryPolicy().service_fallbacks

    def test_malformed_keys_keep_defaults(self):
        policy = RegistryPolicy.from_dict({"footer_denylist": "Gifts", "related_graph": []})
        assert policy.footer_denylist == RegistryPolicy().footer_denylist
        assert policy.related_graph == RegistryPolicy().related_graph

    def test_policy_overrides_reach_registry(self):
        policy = RegistryPolicy.from_dict({"service_blocklist": ["Sleep"], "service_fallbacks": ["Stress"]})
        registry = TagRegistry(["Sleep", "Stress"], policy)
        assert registry.service_tag("Sleep") == "Stress"

    def test_load_policy_missing_file(self, tmp_path):
        assert load_policy(tmp_path / "missing.json") == RegistryPolicy()
        assert load_policy(None) == RegistryPolicy()

    def test_load_policy_bad_json(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_policy(path) == RegistryPolicy()

    def test_load_policy_unreadable_path(self, tmp_path):
        assert load_policy(tmp_path) == RegistryPolicy()

    def test_load_policy_invalid_utf8(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_bytes(b"\xff\xfe\x00{")
        assert load_policy(path) == RegistryPolicy()

    def test_load_policy_file(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"footer_denylist": ["Sleep"]}), encoding="utf-8")
        assert load_policy(path).footer_denylist == ["Sleep"]


class TestTagSource:
    def test_loads_valid_vocabulary(self, tmp_path):
        path = tmp_path / "tags_unique.json"
        path.write_text(json.dumps(["Sleep", "Anxiety"]), encoding="utf-8")

        tags, meta = TagSource(path).load()

        assert tags == ["Sleep", "Anxiety"]
        assert meta.file_name == "tags_unique.json"
        assert meta.count == 2
        assert len(meta.sha256) == 64

    def test_missing_file_disables_tags(self, tmp_path):
        assert TagSource(tmp_path / "missing.json").load() == ([], None)
        assert TagSource(None).load() == ([], None)

    def test_malformed_json_disables_tags(self, tmp_path):
        path = tmp_path / "tags_unique.json"
        path.write_text("[\"Sleep\",", encoding="utf-8")
        assert TagSource(path).load() == ([], None)

    def test_non_list_payload_disables_tags(self, tmp_path):
        path = tmp_path / "tags_unique.json"
        path.write_text(json.dumps({"tags": ["Sleep"]}), encoding="utf-8")
        tags, _meta = TagSource(path).load()
        assert tags == []

    def test_validate_allow_list(self):
        assert validate_allow_list(["Sleep", 3]) == []
        assert validate_allow_list("Sleep") == []
        assert validate_allow_list(["Sleep", " ", " Stress "]) == ["Sleep", "Stress"]
