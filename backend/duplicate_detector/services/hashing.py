import hashlib
import re
from typing import Iterable

# Longer fragments are hashed on their first MAX_HASHED_LENGTH characters.
MAX_HASHED_LENGTH = 10000

_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_WHITESPACE = re.compile(r"\s+")


def normalize_snippet(snippet: str) -> str:
    """
    Canonical form of a code fragment for fingerprinting.

    Strips `//` and `/* */` comments and collapses every run of whitespace
    to a single space, so re-indented or re-commented copies of a fragment
    fingerprint identically.
    """
    text = _LINE_COMMENT.sub("", snippet)
    text = _BLOCK_COMMENT.sub("", text)
    return _WHITESPACE.sub(" ", text).strip()


def pattern_hash(code_snippet: str, pattern_type: str) -> str:
    """
    Deterministic SHA-256 fingerprint of (pattern_type, code_snippet).

    Args:
        code_snippet: Raw fragment as extracted from the file.
        pattern_type: One of the PatternType values.

    Returns:
        64 character lowercase hex digest.
    """
    normalized = normalize_snippet(code_snippet)
    if len(normalized) > MAX_HASHED_LENGTH:
        normalized = normalized[:MAX_HASHED_LENGTH]

    digest = hashlib.sha256()
    digest.update(str(pattern_type).encode("utf-8"))
    digest.update(b"\x00")
    digest.update(normalized.encode("utf-8"))
    return digest.hexdigest()


def group_hash(member_hashes: Iterable[str]) -> str:
    """Order-independent fingerprint of a duplicate group's members."""
    joined = ":".join(sorted(member_hashes))
    return hashlib.sha256(joined.encode("utf-8")).hexdigest()
