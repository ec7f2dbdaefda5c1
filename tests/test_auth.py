"""Tests for bearer token validation and actor roles."""

import pytest
from pydantic import ValidationError

from requirements_mcp.auth import Actor, Role, StaticTokenValidator, extract_bearer_token

from conftest import API_TOKENS, COMMENTER_TOKEN, USER_TOKEN


class TestExtractBearerToken:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc", "abc"),
            ("bearer   abc  ", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("Bearer   ", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parsing(self, header, expected):
        assert extract_bearer_token(header) == expected


class TestStaticTokenValidator:
    def test_known_tokens_resolve_to_actors(self):
        validator = StaticTokenValidator(API_TOKENS)

        actor = validator.validate(USER_TOKEN)

        assert actor == Actor(id="user-alice", username="alice", role=Role.USER)

    def test_unknown_or_missing_token(self):
        validator = StaticTokenValidator(API_TOKENS)
        assert validator.validate("nope") is None
        assert validator.validate(None) is None
        assert validator.validate("") is None

    def test_from_config(self, test_config):
        validator = StaticTokenValidator.from_config(test_config)
        assert validator.validate(COMMENTER_TOKEN).role is Role.COMMENTER

    def test_defaults_to_global_config(self, test_config):
        assert StaticTokenValidator().validate(USER_TOKEN).username == "alice"

    def test_malformed_actor_entry(self):
        with pytest.raises(ValidationError):
            StaticTokenValidator({"tok": {"id": "u1", "username": "u", "role": "Owner"}})


class TestRoles:
    @pytest.mark.parametrize(
        ("role", "can_mutate"),
        [(Role.ADMINISTRATOR, True), (Role.USER, True), (Role.COMMENTER, False)],
    )
    def test_can_mutate(self, role, can_mutate):
        assert Actor(id="x", username="x", role=role).can_mutate is can_mutate
