from duplicate_detector.services.hashing import (
    MAX_HASHED_LENGTH,
    group_hash,
    normalize_snippet,
    pattern_hash,
)

# Pure unit tests: no database, no HTTP.


class TestNormalizeSnippet:
    """Tests for normalize_snippet."""

    def test_collapses_whitespace(self):
        assert normalize_snippet("a  =\n\n   b;\t") == "a = b;"

    def test_strips_line_comments(self):
        assert normalize_snippet("x = 1; // set x\ny = 2;") == "x = 1; y = 2;"

    def test_strips_block_comments(self):
        """Multi-line block comments vanish entirely."""
        source = "/* header\n * docs\n */\nconst a = 1;"
        assert normalize_snippet(source) == "const a = 1;"

    def test_empty_input(self):
        assert normalize_snippet("") == ""


class TestPatternHash:
    """Tests for pattern_hash."""

    def test_is_hex_sha256(self):
        digest = pattern_hash("return 1;", "function")
        assert len(digest) == 64
        int(digest, 16)

    def test_deterministic(self, snippet):
        """Identical fragments must hash identically across calls."""
        assert pattern_hash(snippet, "function") == pattern_hash(snippet, "function")

    def test_formatting_does_not_change_hash(self):
        """Re-indented and re-commented copies are the same fragment."""
        original = "function add(a, b) {\n  return a + b;\n}"
        reformatted = "function add(a, b) { // sum\n        return a + b;\n}"
        assert pattern_hash(original, "function") == pattern_hash(reformatted, "function")

    def test_type_is_part_of_the_fingerprint(self, snippet):
        assert pattern_hash(snippet, "function") != pattern_hash(snippet, "component")

    def test_different_code_differs(self):
        assert pattern_hash("return a + b;", "function") != pattern_hash("return a - b;", "function")

    def test_long_fragments_hash_on_prefix(self):
        """Content past MAX_HASHED_LENGTH does not affect the hash."""
        base = "x" * MAX_HASHED_LENGTH
        assert pattern_hash(base + "tail-a", "other") == pattern_hash(base + "tail-b", "other")


class TestGroupHash:
    """Tests for group_hash."""

    def test_order_independent(self):
        assert group_hash(["b", "a", "c"]) == group_hash(["c", "b", "a"])

    def test_membership_matters(self):
        assert group_hash(["a", "b"]) != group_hash(["a", "c"])
