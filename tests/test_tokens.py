"""
Access token codec tests.
"""

import pytest

from gatepass.core import config
from gatepass.core.tokens import is_well_formed, mint_token


class TestMintToken:

    def test_token_has_fixed_shape(self):
        token = mint_token("student-1", "req-1")
        parts = token.split("-")

        assert len(token) == 67
        assert len(parts) == 4
        assert all(len(p) == 16 for p in parts)
        assert all(c in "0123456789abcdef" for p in parts for c in p)

    def test_token_does_not_reveal_inputs(self):
        token = mint_token("student-1", "request-abc")
        assert "student" not in token
        assert "request" not in token

    def test_same_inputs_give_different_tokens(self):
        tokens = {mint_token("student-1", "req-1") for _ in range(200)}
        assert len(tokens) == 200

    def test_minted_tokens_are_well_formed(self):
        assert is_well_formed(mint_token("a", "b"))

    def test_segment_count_must_divide_digest(self, monkeypatch):
        monkeypatch.setattr(config, "TOKEN_SEGMENTS", 3)
        with pytest.raises(ValueError):
            mint_token("a", "b")


class TestIsWellFormed:

    @pytest.mark.parametrize("token", [
        "",
        "abc",
        "a-b-c",
        "a-b-c-d-e",
        "a--c-d",
        "-b-c-d",
        "a-b-c-",
        None,
        1234,
    ])
    def test_rejects_bad_shapes(self, token):
        assert is_well_formed(token) is False

    def test_accepts_four_non_empty_segments(self):
        # Shape check only; authenticity is established by the store lookup
        assert is_well_formed("a-b-c-d") is True

    def test_follows_configured_segment_count(self, monkeypatch):
        monkeypatch.setattr(config, "TOKEN_SEGMENTS", 2)
        assert is_well_formed("abc-def") is True
        assert is_well_formed("a-b-c-d") is False
