"""Seed parsing, canonicalization, and hashing utilities."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib
import re

_INT_RE = re.compile(r"^[+-]?\d+$")
_WORD_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
_SEED_MASK = (1 << 64) - 1

_EXAMPLE_SEEDS = ["42", "1337", "misty-harbor", "ember_isle"]


class SeedParseError(ValueError):
    """Raised when a seed cannot be turned into a generator seed."""


@dataclass(frozen=True)
class ParsedSeed:
    """Validated seed with the integer value fed to the RNG."""

    original: str
    canonical: str
    value: int
    numeric: bool


def seed_hash64(text: str) -> int:
    """Hash a canonical word seed to a deterministic unsigned 64-bit integer."""

    digest = hashlib.blake2b(text.encode("ascii", errors="strict"), digest_size=8, person=b"hydroseed").digest()
    return int.from_bytes(digest, byteorder="big", signed=False)


def parse_seed(seed_text: str | int) -> ParsedSeed:
    """Accept a decimal integer, used as is, or a word seed hashed case-insensitively."""

    if seed_text is None:
        raise SeedParseError(_error_message("Seed is required."))
    if isinstance(seed_text, int):
        return ParsedSeed(str(seed_text), str(seed_text & _SEED_MASK), seed_text & _SEED_MASK, True)

    raw = seed_text.strip()
    if not raw:
        raise SeedParseError(_error_message("Seed cannot be empty."))

    if _INT_RE.fullmatch(raw):
        value = int(raw) & _SEED_MASK
        return ParsedSeed(raw, str(value), value, True)

    if not _WORD_RE.fullmatch(raw):
        raise SeedParseError(_error_message("Seed may only contain letters, digits, '-' and '_'."))

    canonical = raw.lower().replace("_", "-")
    return ParsedSeed(raw, canonical, seed_hash64(canonical), False)


def _error_message(reason: str) -> str:
    examples = ", ".join(_EXAMPLE_SEEDS)
    return f"{reason} Examples: {examples}"
