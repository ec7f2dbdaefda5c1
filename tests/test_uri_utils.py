"""Tests for typed resource URIs and the requirements:// navigation scheme."""

import pytest

from requirements_mcp.resources.uri_utils import (
    ActivePromptURI,
    CollectionKind,
    CollectionURI,
    NavigationItemURI,
    ParsedURI,
    ResourceScheme,
    URIParseError,
    build_uri,
    canonicalize_uri,
    expected_prefix,
    is_sub_path_supported,
    parse_navigation_uri,
    parse_resource_uri,
    parse_uri,
    supported_sub_paths,
)


class TestParseUri:
    def test_user_story_requirements_with_parameters(self):
        parsed = parse_uri("user-story://US-042/requirements?status=active")

        assert parsed.scheme is ResourceScheme.USER_STORY
        assert parsed.reference_id == "US-042"
        assert parsed.sub_path == "requirements"
        assert parsed.parameters == {"status": "active"}

    def test_plain_entity_uri(self):
        parsed = parse_uri("epic://EP-001")
        assert parsed == ParsedURI(ResourceScheme.EPIC, "EP-001")

    def test_scheme_prefix_mismatch_names_both(self):
        with pytest.raises(URIParseError) as exc_info:
            parse_uri("epic://US-001")

        message = str(exc_info.value)
        assert "epic" in message
        assert "US-001" in message

    @pytest.mark.parametrize(
        "uri",
        [
            "",
            " epic://EP-001",
            "epic://EP-001 ",
            "EP-001",
            "Epic://EP-001",
            "feature://FT-001",
            "epic://",
            "epic://EP-abc",
            "epic://ep-001",
            "prompt://PROMPT-",
        ],
    )
    def test_rejects_malformed(self, uri):
        with pytest.raises(URIParseError):
            parse_uri(uri)

    def test_rejects_unsupported_sub_path(self):
        with pytest.raises(URIParseError, match="unsupported sub-path"):
            parse_uri("acceptance-criteria://AC-001/requirements")

    @pytest.mark.parametrize(
        "uri",
        [
            "epic://EP-0\n01",
            "epic://EP-0\t01",
            "user-story://US-001/requi\rrements",
            "epic://EP-001?status=a\x00b",
            "requirement://REQ-001\x7f",
            "requirements://ep\nics",
        ],
    )
    def test_rejects_control_characters(self, uri):
        with pytest.raises(URIParseError, match="control characters"):
            parse_resource_uri(uri)

    def test_leading_zeros_allowed(self):
        assert parse_uri("requirement://REQ-0007").reference_id == "REQ-0007"

    def test_duplicate_parameters_first_wins(self):
        parsed = parse_uri("epic://EP-001/user-stories?status=done&status=backlog")
        assert parsed.parameters == {"status": "done"}

    def test_unknown_parameters_preserved_and_fragment_ignored(self):
        parsed = parse_uri("requirement://REQ-001/relationships?view=full&x=1#section")
        assert parsed.parameters == {"view": "full", "x": "1"}
        assert parsed.sub_path == "relationships"

    def test_percent_encoding_decoded(self):
        parsed = parse_uri("user-story://US-001/acceptance%2Dcriteria?owner=a%20b")
        assert parsed.sub_path == "acceptance-criteria"
        assert parsed.parameters == {"owner": "a b"}


class TestBuildUri:
    def test_parameters_sorted(self):
        uri = build_uri("epic", "EP-001", "user-stories", {"z": "1", "a": "2"})
        assert uri == "epic://EP-001/user-stories?a=2&z=1"

    def test_build_validates(self):
        with pytest.raises(URIParseError):
            build_uri("epic", "US-001")
        with pytest.raises(URIParseError):
            build_uri("requirement", "REQ-001", "hierarchy")

    def test_canonical_form_is_stable(self):
        uri = "user-story://US-042/requirements?status=active&owner=bob"
        canonical = canonicalize_uri(uri)

        assert canonical == "user-story://US-042/requirements?owner=bob&status=active"
        assert canonicalize_uri(canonical) == canonical
        assert parse_uri(canonical).uri == canonical


class TestSchemeHelpers:
    def test_expected_prefixes(self):
        assert expected_prefix("epic") == "EP"
        assert expected_prefix(ResourceScheme.ACCEPTANCE_CRITERIA) == "AC"
        assert expected_prefix("prompt") == "PROMPT"

    def test_sub_path_whitelist(self):
        assert supported_sub_paths("epic") == ["hierarchy", "user-stories"]
        assert supported_sub_paths("prompt") == []
        assert is_sub_path_supported("requirement", "relationships")
        assert not is_sub_path_supported("bogus", "relationships")


class TestNavigationUris:
    def test_collection(self):
        assert parse_navigation_uri("requirements://user-stories") == CollectionURI(
            CollectionKind.USER_STORIES
        )

    def test_active_prompt(self):
        assert parse_navigation_uri("requirements://prompts/active") == ActivePromptURI()

    def test_item_by_reference_is_uppercased(self):
        item = parse_navigation_uri("requirements://epics/ep-003")
        assert item == NavigationItemURI(CollectionKind.EPICS, "EP-003")
        assert item.rewrite("EP-003").uri == "epic://EP-003"

    def test_item_by_uuid(self):
        uuid = "0A1B2C3D-0000-4000-8000-000000000001"
        item = parse_navigation_uri(f"requirements://requirements/{uuid}")
        assert item == NavigationItemURI(CollectionKind.REQUIREMENTS, uuid.lower())

    @pytest.mark.parametrize(
        "uri",
        [
            "requirements://",
            "requirements://features",
            "requirements://epics/US-001",
            "requirements://epics/EP-001/extra",
        ],
    )
    def test_rejects_bad_navigation(self, uri):
        with pytest.raises(URIParseError):
            parse_navigation_uri(uri)

    def test_parse_resource_uri_dispatches(self):
        assert isinstance(parse_resource_uri("requirements://epics"), CollectionURI)
        assert isinstance(parse_resource_uri("epic://EP-001"), ParsedURI)

    def test_result_keys(self):
        assert CollectionKind.ACCEPTANCE_CRITERIA.result_key == "acceptance_criteria"
        assert CollectionKind.USER_STORIES.scheme is ResourceScheme.USER_STORY
