"""Key manager: locates, loads or generates the package signing key pair."""

from __future__ import annotations

import base64
import hashlib
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from iodbuild.errors import ConfigurationError
from iodbuild.keys.types import GeneratedKeys, KeyPair
from iodbuild.packagefile.format import read_pem
from iodbuild.ui import Reporter

if TYPE_CHECKING:
    from iodbuild.config import BuildConfig

ENV_PREFIX = "env:"
FILE_PREFIX = "file:"
FINGERPRINT_PREFIX = "Fingerprint=sha256:"
PUBLIC_EXPONENT = 65537
PRIVATE_KEY_MODE = 0o600


@dataclass(frozen=True)
class KeyFiles:
    """Which of the configured key files exist."""

    private_key: bool
    public_key: bool

    @property
    def any(self) -> bool:
        return self.private_key or self.public_key

    @property
    def both(self) -> bool:
        return self.private_key and self.public_key


def check_keys(config: BuildConfig) -> KeyFiles:
    """Report whether the private and public key files exist."""
    return KeyFiles(private_key=config.key.exists(), public_key=config.pubkey.exists())


def resolve_passphrase(
    keypass: str | None,
    reporter: Reporter | None = None,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Resolve ``--keypass``, following ``env:NAME`` and ``file:PATH`` indirection.

    An unset environment variable resolves to an empty string. A ``file:`` source
    has one trailing newline stripped.
    """
    reporter = reporter or Reporter()
    environ = os.environ if environ is None else environ
    value = keypass or ""

    if value.startswith(ENV_PREFIX):
        name = value[len(ENV_PREFIX):]
        reporter.step(f"Using environment variable '{name}' for key passphrase.")
        value = environ.get(name, "")

    if value.startswith(FILE_PREFIX):
        path = Path(value[len(FILE_PREFIX):]).expanduser().resolve()
        reporter.step(f"Using file '{path}' for key passphrase.")
        try:
            value = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read key passphrase file {path}: {e}") from e
        if value.endswith("\n"):
            value = value[:-1]
            if value.endswith("\r"):
                value = value[:-1]

    return value


def public_key_fingerprint(public_key_pem: str | bytes) -> str:
    """Base64 SHA-256 digest of the decoded public key bytes."""
    key_bytes = read_pem(public_key_pem)
    return base64.b64encode(hashlib.sha256(key_bytes).digest()).decode("ascii")


def _write_private_key(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, PRIVATE_KEY_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    # owner read/write only, whatever the umask
    os.chmod(path, PRIVATE_KEY_MODE)


def generate_key_pair(config: BuildConfig, reporter: Reporter | None = None) -> GeneratedKeys:
    """Generate and save a passphrase-protected RSA key pair.

    The public key file starts with a ``Fingerprint=sha256:<value>`` line.

    Raises:
        ConfigurationError: If a key file already exists, the passphrase is empty,
            or the key files cannot be written
    """
    reporter = reporter or Reporter(quiet=config.quiet)

    if check_keys(config).any:
        raise ConfigurationError(
            f"A key already exists ({config.key}).",
            context={"hint": "Before generating a new one, think about what you're doing."},
        )

    passphrase = resolve_passphrase(config.keypass, reporter)
    if not passphrase:
        raise ConfigurationError("No key passphrase given: use --keypass.")

    reporter.step("Generating key pair...")
    private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=config.key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.BestAvailableEncryption(passphrase.encode("utf-8")),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")

    fingerprint = public_key_fingerprint(public_pem)
    public_text = f"{FINGERPRINT_PREFIX}{fingerprint}\n\n{public_pem}"

    try:
        config.key.parent.mkdir(parents=True, exist_ok=True)
        config.pubkey.parent.mkdir(parents=True, exist_ok=True)

        reporter.step(f"Writing private key to: {config.key}")
        _write_private_key(config.key, private_pem)
        reporter.step(f"Writing public key to: {config.pubkey}")
        config.pubkey.write_text(public_text, encoding="ascii")
    except OSError as e:
        raise ConfigurationError(
            f"Cannot write key pair files: {e}",
            context={"key": str(config.key), "pubkey": str(config.pubkey)},
        ) from e

    reporter.info(f"Public key fingerprint (this is for the site-config): {fingerprint}")
    return GeneratedKeys(
        private_key_path=config.key,
        public_key_path=config.pubkey,
        fingerprint=fingerprint,
    )


def ensure_key_pair(config: BuildConfig, reporter: Reporter | None = None) -> KeyPair:
    """Load the key pair used to sign every package in a build run.

    The passphrase is not checked here; a wrong one fails when signing.

    Raises:
        ConfigurationError: If either key file is missing
    """
    reporter = reporter or Reporter(quiet=config.quiet)

    if not check_keys(config).both:
        raise ConfigurationError(
            f"Key pair files do not exist: '{config.key}' and '{config.pubkey}'.",
            context={"hint": "Generate using --keygen, or specify using --key."},
        )

    try:
        private_key = config.key.read_bytes()
        public_key = config.pubkey.read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Cannot read key pair files: {e}") from e

    return KeyPair(
        private_key=private_key,
        public_key=public_key,
        passphrase=resolve_passphrase(config.keypass, reporter),
    )
