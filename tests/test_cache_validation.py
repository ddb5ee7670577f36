"""Unit tests for cache validation module."""

import pytest

from kvstash.cache.validation import (
    MAX_KEY_BYTES,
    Validity,
    compute_expiration,
    get_ttl_remaining,
    get_validity,
    validate_cache_key,
)


class TestValidity:
    """Test classification of indexed entries."""

    def test_never_expires_is_valid(self):
        """Test that the None sentinel is always valid."""
        assert get_validity(None, 1e12) is Validity.VALID

    def test_future_expiration_is_valid(self):
        assert get_validity(1010.0, 1000.0) is Validity.VALID

    def test_past_expiration_is_stale(self):
        assert get_validity(990.0, 1000.0) is Validity.STALE

    def test_expiration_at_now_is_stale(self):
        """Test that an entry expiring exactly now is no longer valid."""
        assert get_validity(1000.0, 1000.0) is Validity.STALE

    def test_is_present(self):
        assert Validity.VALID.is_present is True
        assert Validity.STALE.is_present is True
        assert Validity.ABSENT.is_present is False


class TestExpiration:
    """Test TTL to timestamp conversion."""

    def test_ttl_added_to_now(self):
        assert compute_expiration(60, 1000.0) == 1060.0

    def test_fractional_ttl(self):
        assert compute_expiration(0.5, 1000.0) == 1000.5

    @pytest.mark.parametrize("ttl", [0, None])
    def test_zero_or_none_never_expires(self, ttl):
        assert compute_expiration(ttl, 1000.0) is None

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            compute_expiration(-5, 1000.0)

    def test_infinite_ttl_rejected(self):
        with pytest.raises(ValueError):
            compute_expiration(float("inf"), 1000.0)

    def test_non_numeric_ttl_rejected(self):
        with pytest.raises(TypeError):
            compute_expiration("60", 1000.0)

    def test_ttl_remaining(self):
        assert get_ttl_remaining(1060.0, 1000.0) == 60
        assert get_ttl_remaining(900.0, 1000.0) == 0
        assert get_ttl_remaining(None, 1000.0) is None


class TestCacheKeyValidation:
    """Test cache key validation."""

    @pytest.mark.parametrize(
        "key", ["user-42", "report.v2", "with space inside", "ünïcode", "a" * 50]
    )
    def test_valid_keys(self, key):
        validate_cache_key(key)  # Should not raise

    def test_empty_key(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_cache_key("")

    def test_non_string_key(self):
        with pytest.raises(TypeError, match="must be a string"):
            validate_cache_key(42)

    @pytest.mark.parametrize("key", ["a/b", "../escape", "a\\b", "/abs"])
    def test_path_separators_rejected(self, key):
        with pytest.raises(ValueError, match="path separators"):
            validate_cache_key(key)

    @pytest.mark.parametrize("key", [".", ".."])
    def test_relative_components_rejected(self, key):
        with pytest.raises(ValueError, match="not a valid file name"):
            validate_cache_key(key)

    def test_nul_rejected(self):
        with pytest.raises(ValueError, match="NUL"):
            validate_cache_key("a\x00b")

    def test_surrounding_whitespace_rejected(self):
        with pytest.raises(ValueError, match="whitespace"):
            validate_cache_key(" key")

    def test_length_limit(self):
        validate_cache_key("k" * MAX_KEY_BYTES)
        with pytest.raises(ValueError, match="too long"):
            validate_cache_key("k" * (MAX_KEY_BYTES + 1))
