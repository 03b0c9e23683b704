"""Key pair types."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class KeyPair:
    """Signing key material, loaded once per run and shared read-only."""

    private_key: bytes = field(repr=False)
    public_key: bytes
    passphrase: str = field(default="", repr=False)


@dataclass(frozen=True)
class GeneratedKeys:
    """Result of a key generation run."""

    private_key_path: Path
    public_key_path: Path
    fingerprint: str
