"""Utility modules for the viatico kernel."""

from viatico_kernel.utils.hashing import (
    canonicalize_json,
    hash_audit_record,
    hash_payload,
)

__all__ = [
    "hash_payload",
    "hash_audit_record",
    "canonicalize_json",
]
