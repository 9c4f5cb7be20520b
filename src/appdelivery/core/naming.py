"""
Deterministic naming and hashing.

Every name the assembler produces must be a pure function of its input so
that assembling the same revision twice yields byte-identical resources.

Manifesto:
    Hashing must be:
    - **Deterministic:** same object → same digest, independent of dict order
    - **Short:** names are limited to the platform's maximum name length
    - **Word-safe:** encoded without vowels so generated names never spell words

Examples:
    >>> gen_trait_name("test-comp", {"kind": "Service"}, "Ingress").startswith("test-comp-ingress-")
    True
    >>> helm_qualified_name("my-release", "podinfo")
    'my-release-podinfo'
    >>> extract_revision_num("test-assemble-v3")
    3

Tags:
    hashing, naming, determinism
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from appdelivery.core.errors import BadRevisionNameError

# Alphabet without vowels and easily confused characters (0, 1, 3).
_SAFE_ALPHANUMS = "bcdfghjklmnpqrstvwxz2456789"

_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193

TRAIT_PREFIX_KEY = "trait"
DUMMY = "dummy"


def canonical_json(obj: Any) -> str:
    """Serialize with sorted keys and no whitespace (stable across runs)."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def compute_hash(*values: Any, length: int = 16) -> str:
    """SHA-256 over ``|``-joined canonical values, truncated to ``length`` hex chars."""
    content = "|".join(canonical_json(v) if isinstance(v, (dict, list)) else str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def fnv32a(data: bytes) -> int:
    """32-bit FNV-1a."""
    h = _FNV32_OFFSET
    for byte in data:
        h ^= byte
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h


def safe_encode(value: str) -> str:
    """Map each character onto the word-safe alphabet."""
    return "".join(_SAFE_ALPHANUMS[ord(ch) % len(_SAFE_ALPHANUMS)] for ch in value)


def compute_object_hash(obj: Any) -> str:
    """Short, word-safe content hash of a JSON-like object."""
    return safe_encode(str(fnv32a(canonical_json(obj).encode())))


def gen_trait_name(component_name: str, trait: dict[str, Any], trait_type: str) -> str:
    """Trait name from component name, trait type and trait content hash."""
    middle = TRAIT_PREFIX_KEY
    if trait_type and trait_type != DUMMY:
        middle = trait_type.lower()
    return f"{component_name}-{middle}-{compute_object_hash(trait)}"


def helm_qualified_name(release_name: str, chart_name: str, max_length: int = 63) -> str:
    """Helm's default full name for resources of a release.

    If the release name already contains the chart name it is used as-is,
    otherwise ``<release>-<chart>`` truncated to ``max_length`` with a
    trailing separator trimmed.
    """
    if chart_name in release_name:
        return release_name
    name = f"{release_name}-{chart_name}"
    if len(name) > max_length:
        name = name[:max_length].removesuffix("-")
    return name


def extract_revision_num(revision_name: str, delimiter: str = "-") -> int:
    """Extract the number from a ``<name><delimiter>v<number>`` revision name."""
    parts = revision_name.split(delimiter)
    if len(parts) == 1 or not parts[-1].startswith("v"):
        raise BadRevisionNameError(revision_name)
    try:
        return int(parts[-1][1:])
    except ValueError as e:
        raise BadRevisionNameError(revision_name) from e


def merge_map_override_with_dst(
    src: dict[str, str] | None, dst: dict[str, str] | None
) -> dict[str, str] | None:
    """Merge two maps that may be ``None``; ``dst`` wins on conflicting keys."""
    if src is None and dst is None:
        return None
    merged = dict(src or {})
    merged.update(dst or {})
    return merged


__all__ = [
    "canonical_json",
    "compute_hash",
    "fnv32a",
    "safe_encode",
    "compute_object_hash",
    "gen_trait_name",
    "helm_qualified_name",
    "extract_revision_num",
    "merge_map_override_with_dst",
]
