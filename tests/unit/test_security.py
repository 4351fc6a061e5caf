"""Unit tests for security module (password hashing and verification)."""

from zonekeeper.security import hash_password, verify_password


class TestHashPassword:
    def test_hash_password_generates_different_hashes_for_same_password(self):
        password = "test_password"
        hash1 = hash_password(password)
        hash2 = hash_password(password)

        assert hash1 != hash2
        assert hash1.startswith("$2b$")

    def test_hash_password_handles_unicode(self):
        hashed = hash_password("pässwörd-🔑")

        assert hashed.startswith("$2b$")

    def test_long_passwords_differing_after_72_bytes_are_distinct(self):
        base = "a" * 80
        hashed = hash_password(base + "x")

        assert verify_password(base + "x", hashed) is True
        assert verify_password(base + "y", hashed) is False


class TestVerifyPassword:
    def test_verify_correct_password_returns_true(self):
        hashed = hash_password("correct_password")

        assert verify_password("correct_password", hashed) is True

    def test_verify_incorrect_password_returns_false(self):
        hashed = hash_password("correct_password")

        assert verify_password("wrong_password", hashed) is False

    def test_verify_missing_hash_returns_false(self):
        assert verify_password("anything", None) is False
        assert verify_password("anything", "") is False

    def test_verify_malformed_hash_returns_false(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False
