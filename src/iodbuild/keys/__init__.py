"""Signing key pair management."""

from iodbuild.keys.manager import (
    KeyFiles,
    check_keys,
    ensure_key_pair,
    generate_key_pair,
    public_key_fingerprint,
    resolve_passphrase,
)
from iodbuild.keys.types import GeneratedKeys, KeyPair

__all__ = [
    "GeneratedKeys",
    "KeyFiles",
    "KeyPair",
    "check_keys",
    "ensure_key_pair",
    "generate_key_pair",
    "public_key_fingerprint",
    "resolve_passphrase",
]
