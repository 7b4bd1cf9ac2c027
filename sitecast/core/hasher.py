"""Canonical hashing helpers for content manifests and the run ledger.

The hosting backend deduplicates files by the SHA-256 of their *gzipped*
bytes, so compression must be byte-for-byte reproducible: the gzip header
timestamp is pinned to zero and the compression level is fixed.
"""

from __future__ import annotations

import gzip
import hashlib
import json
from typing import Any

GZIP_LEVEL = 6  # zlib default; must never vary between hashing and upload


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def gzip_bytes(data: bytes) -> bytes:
    """Gzip *data* reproducibly (fixed level, zero mtime)."""
    return gzip.compress(data, compresslevel=GZIP_LEVEL, mtime=0)


def file_content_hash(data: bytes) -> str:
    """Backend deduplication key: SHA-256 over the gzip-compressed bytes."""
    return sha256_hex(gzip_bytes(data))


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object.

    Returns "sha256:<hex>" format.
    """
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"


def compute_entry_hash(entry_dict: dict[str, Any]) -> str:
    """SHA-256 of a ledger entry (excluding the entry_hash field itself).

    This is the seal that makes each entry tamper-evident.
    """
    d = {k: v for k, v in entry_dict.items() if k != "entry_hash"}
    return sha256_hex(canonical_json_bytes(d))
