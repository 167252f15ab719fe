"""Tests for the credential vault: format checks, masking and encryption."""

import json

import pytest

from estudimen.exceptions import ConfigurationError
from estudimen.models.api_key import ApiProvider
from estudimen.vault import CredentialVault, DecryptionError, EncryptedPayload
from estudimen.vault.credential_vault import generate_encryption_key


class TestConstruction:
    def test_rejects_short_key(self):
        with pytest.raises(ConfigurationError):
            CredentialVault("x" * 31)

    def test_rejects_empty_key(self):
        with pytest.raises(ConfigurationError):
            CredentialVault("")

    def test_accepts_32_char_key(self):
        CredentialVault("k" * 32)

    def test_generated_key_is_usable(self):
        key = generate_encryption_key()
        assert len(key) >= 32
        vault = CredentialVault(key)
        assert vault.decrypt(vault.encrypt("hello")) == "hello"


class TestValidateFormat:
    def test_openai_key_with_prefix_and_length(self, vault):
        assert vault.validate_format("sk-" + "a" * 40, "openai") is True

    def test_openai_rejects_missing_prefix(self, vault):
        assert vault.validate_format("notavalidkey", "openai") is False
        assert vault.validate_format("pk-" + "a" * 40, ApiProvider.OPENAI) is False

    def test_openai_rejects_short_key(self, vault):
        assert vault.validate_format("sk-" + "a" * 30, "openai") is False

    def test_gemini_accepts_30_alnum_chars(self, vault):
        assert vault.validate_format("A1b2C3d4E5" * 3, "gemini") is True

    def test_gemini_allows_dash_and_underscore(self, vault, gemini_key):
        assert vault.validate_format(gemini_key, ApiProvider.GEMINI) is True
        assert vault.validate_format("abc-def_" * 4, "gemini") is True

    def test_gemini_rejects_short_or_symbols(self, vault):
        assert vault.validate_format("a" * 29, "gemini") is False
        assert vault.validate_format("a" * 29 + "!", "gemini") is False

    @pytest.mark.parametrize("suffix", ["\n", " ", "\t"])
    def test_gemini_rejects_trailing_whitespace(self, vault, suffix):
        assert vault.validate_format("A1b2C3d4E5" * 3 + suffix, "gemini") is False

    @pytest.mark.parametrize("value", [None, "", 12345, b"sk-bytes"])
    def test_malformed_input_returns_false(self, vault, value):
        assert vault.validate_format(value, "openai") is False

    def test_unknown_provider_returns_false(self, vault):
        assert vault.validate_format("sk-" + "a" * 40, "anthropic") is False


class TestMask:
    def test_keeps_four_leading_and_trailing(self, vault):
        assert vault.mask("sk-abcdefgh1234") == "sk-a*******1234"

    def test_short_inputs_collapse_to_placeholder(self, vault):
        assert vault.mask("") == "***"
        assert vault.mask("1234567") == "***"

    def test_exactly_eight_chars_has_no_mask(self, vault):
        assert vault.mask("abcdefgh") == "abcdefgh"

    def test_deterministic(self, vault, openai_key):
        assert vault.mask(openai_key) == vault.mask(openai_key)

    def test_never_reveals_more_than_prefix_and_suffix(self, vault):
        key = "k" * 4 + "SECRET" * 50 + "z" * 4
        masked = vault.mask(key)
        assert len(masked) == len(key)
        assert "SECRET" not in masked
        assert masked.strip("*kz") == ""


class TestEncryption:
    def test_round_trip(self, vault, openai_key):
        payload = vault.encrypt(openai_key)
        plaintext = vault.decrypt(payload)
        assert plaintext == openai_key
        assert len(plaintext) == 44

    def test_round_trip_unicode(self, vault):
        assert vault.decrypt(vault.encrypt("clé-ñ-鍵")) == "clé-ñ-鍵"

    def test_encryption_is_not_deterministic(self, vault, openai_key):
        first = vault.encrypt(openai_key)
        second = vault.encrypt(openai_key)
        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_ciphertext_does_not_contain_plaintext(self, vault, openai_key):
        payload = vault.encrypt(openai_key)
        assert openai_key not in payload.ciphertext

    def test_wrong_key_fails(self, vault, openai_key):
        payload = vault.encrypt(openai_key)
        other = CredentialVault("another-encryption-key-0123456789abcdef")
        with pytest.raises(DecryptionError):
            other.decrypt(payload)

    def test_tampered_ciphertext_fails(self, vault, openai_key):
        payload = vault.encrypt(openai_key)
        flipped = "B" if payload.ciphertext[0] != "B" else "C"
        tampered = EncryptedPayload(ciphertext=flipped + payload.ciphertext[1:], iv=payload.iv)
        with pytest.raises(DecryptionError):
            vault.decrypt(tampered)

    def test_swapped_iv_fails(self, vault, openai_key):
        first = vault.encrypt(openai_key)
        second = vault.encrypt(openai_key)
        with pytest.raises(DecryptionError):
            vault.decrypt(EncryptedPayload(ciphertext=first.ciphertext, iv=second.iv))

    def test_malformed_base64_fails(self, vault):
        with pytest.raises(DecryptionError):
            vault.decrypt(EncryptedPayload(ciphertext="not base64!!", iv="also bad"))

    def test_failure_is_repeatable(self, vault):
        bad = EncryptedPayload(ciphertext="AAAA", iv="AAAAAAAAAAAAAAAA")
        for _ in range(2):
            with pytest.raises(DecryptionError):
                vault.decrypt(bad)


class TestStorageFormat:
    def test_round_trip(self, vault, gemini_key):
        stored = vault.encrypt_for_storage(gemini_key)
        assert gemini_key not in stored
        assert vault.decrypt_from_storage(stored) == gemini_key

    def test_storage_string_is_json_with_payload_fields(self, vault, gemini_key):
        parsed = json.loads(vault.encrypt_for_storage(gemini_key))
        assert set(parsed) == {"encrypted", "iv"}

    @pytest.mark.parametrize(
        "data",
        [
            "not json",
            "[]",
            '{"encrypted": "abc"}',
            '{"encrypted": 1, "iv": 2}',
            "null",
        ],
    )
    def test_unparseable_storage_string_raises_decryption_error(self, vault, data):
        with pytest.raises(DecryptionError):
            vault.decrypt_from_storage(data)
