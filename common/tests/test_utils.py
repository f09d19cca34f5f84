"""Unit tests for shared utilities."""

from common.utils import BASE62_ALPHABET, generate_storage_name, generate_token_path


class TestGenerateTokenPath:
    def test_base62_only(self):
        path = generate_token_path()
        assert path
        assert set(path) <= set(BASE62_ALPHABET)

    def test_length_bounded_by_entropy(self):
        """16 random bytes never need more than 22 base62 digits."""
        assert len(generate_token_path(16)) <= 22

    def test_unique(self):
        assert len({generate_token_path() for _ in range(100)}) == 100


class TestGenerateStorageName:
    def test_under_prefix(self):
        name = generate_storage_name("42")
        prefix, _, leaf = name.partition("/")
        assert prefix == "42"
        assert len(leaf) == 32

    def test_unique(self):
        assert generate_storage_name("1") != generate_storage_name("1")
