"""Tests for invite code generation, validation and sharing text."""

import re

import pytest

from bitsettler.flow.invite_codes import (
    DIGITS,
    INVITE_CODE_CHARS,
    LETTERS,
    create_invite_message,
    format_invite_code,
    generate_invite_code,
    generate_invite_link,
    generate_settlement_invite_code,
    is_valid_invite_code,
    normalize_invite_code,
)

CODE_PATTERN = re.compile(r"^[A-HJ-NP-Z]{3}[2-9]{3}$")


class TestGeneration:
    def test_generated_codes_are_valid(self):
        for _ in range(10_000):
            code = generate_invite_code()

            assert CODE_PATTERN.match(code), code
            assert is_valid_invite_code(code)
            assert normalize_invite_code(code) == code
            assert format_invite_code(code) == code

    def test_alphabet_excludes_ambiguous_characters(self):
        for char in "IO01":
            assert char not in INVITE_CODE_CHARS
        assert len(LETTERS) == 24
        assert len(DIGITS) == 8

    def test_codes_vary(self):
        codes = {generate_invite_code() for _ in range(200)}
        assert len(codes) > 150

    def test_settlement_invite_code_record(self):
        invite = generate_settlement_invite_code("s-1", "Hollow Oak")

        assert is_valid_invite_code(invite.code)
        assert invite.formatted_code == invite.code
        assert invite.settlement_id == "s-1"
        assert invite.settlement_name == "Hollow Oak"
        assert invite.created_at.tzinfo is not None


class TestValidation:
    @pytest.mark.parametrize("code", ["ABC234", "abc234", "ZZZ999", "HJK222"])
    def test_valid(self, code):
        assert is_valid_invite_code(code) is True

    @pytest.mark.parametrize(
        "code", ["", "ABC23", "ABC2345", "ABI234", "ABO234", "ABC204", "ABC214", "AB-234", None]
    )
    def test_invalid(self, code):
        assert is_valid_invite_code(code) is False

    def test_normalize(self):
        assert normalize_invite_code("  abc234\n") == "ABC234"


class TestSharing:
    def test_invite_link(self):
        assert (
            generate_invite_link("ABC234", "https://example.test/")
            == "https://example.test/settlement/join/ABC234"
        )

    def test_message_without_link(self):
        message = create_invite_message("Hollow Oak", "ABC234")

        assert message == "Join me in Hollow Oak!\n\nUse invite code: ABC234"

    def test_message_with_link(self):
        message = create_invite_message("Hollow Oak", "ABC234", "https://example.test")

        assert message.endswith(
            "Or follow this link: https://example.test/settlement/join/ABC234"
        )
