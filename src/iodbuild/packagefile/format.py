"""Default ``.morphic-package`` archive format.

Layout (all integers big-endian)::

    magic "MORPHPKG" | version u16 | package data length u32 | signature length u32 | installer length u64
    package data (UTF-8 JSON) | signature (RSA PKCS#1 v1.5, SHA-256, over the package data) | installer bytes
"""

from __future__ import annotations

import base64
import binascii
import json
import shutil
import struct
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from iodbuild.packagefile.types import ArchiveHeader, ArchiveInfo
from iodbuild.utils.jsonfiles import thaw

if TYPE_CHECKING:
    from iodbuild.keys.types import KeyPair

MAGIC = b"MORPHPKG"
FORMAT_VERSION = 1
HEADER_STRUCT = struct.Struct(">8sHIIQ")
MAX_SIGNATURE_LENGTH = 4096

PEM_BEGIN = "-----BEGIN "
PEM_END = "-----END "


def read_pem(pem_text: str | bytes) -> bytes:
    """Decode the base64 body of the first PEM block in ``pem_text``.

    Text outside the block (such as a fingerprint comment) is ignored.

    Raises:
        ValueError: If no complete PEM block is present
    """
    if isinstance(pem_text, bytes):
        pem_text = pem_text.decode("ascii")

    body: list[str] = []
    in_block = False
    for line in pem_text.splitlines():
        line = line.strip()
        if line.startswith(PEM_BEGIN):
            in_block = True
            continue
        if line.startswith(PEM_END):
            if not in_block:
                break
            try:
                return base64.b64decode("".join(body), validate=True)
            except binascii.Error as e:
                raise ValueError(f"Invalid PEM body: {e}") from e
        if in_block and line and ":" not in line:
            body.append(line)
    raise ValueError("No PEM block found")


def _load_private_key(key_pair: KeyPair) -> rsa.RSAPrivateKey:
    password = key_pair.passphrase.encode("utf-8") if key_pair.passphrase else None
    private_key = serialization.load_pem_private_key(key_pair.private_key, password=password)
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ValueError("Package signing key must be an RSA private key")
    return private_key


def sign_package_data(data: bytes, key_pair: KeyPair) -> bytes:
    """Sign package data bytes with the key pair's private key."""
    return _load_private_key(key_pair).sign(data, padding.PKCS1v15(), hashes.SHA256())


class MorphicPackageFile:
    """Archive implementation writing and reading ``.morphic-package`` files."""

    def create(
        self,
        package_data: Mapping[str, Any],
        installer_path: Path | None,
        key_pair: KeyPair,
        output_path: Path,
    ) -> Path:
        data = json.dumps(thaw(package_data), ensure_ascii=False, indent=2).encode("utf-8")
        signature = sign_package_data(data, key_pair)
        installer_length = installer_path.stat().st_size if installer_path is not None else 0

        header = HEADER_STRUCT.pack(MAGIC, FORMAT_VERSION, len(data), len(signature), installer_length)
        with open(output_path, "wb") as out:
            out.write(header)
            out.write(data)
            out.write(signature)
            if installer_path is not None:
                with open(installer_path, "rb") as installer:
                    shutil.copyfileobj(installer, out)
        return output_path

    def read(self, archive_path: Path) -> ArchiveInfo:
        with open(archive_path, "rb") as f:
            raw_header = f.read(HEADER_STRUCT.size)
            if len(raw_header) != HEADER_STRUCT.size:
                raise ValueError(f"Truncated package file header: {archive_path}")
            magic, version, data_length, signature_length, installer_length = HEADER_STRUCT.unpack(raw_header)
            if magic != MAGIC:
                raise ValueError(f"Not a package file: {archive_path}")
            if version != FORMAT_VERSION:
                raise ValueError(f"Unsupported package file version {version}: {archive_path}")
            if signature_length == 0 or signature_length > MAX_SIGNATURE_LENGTH:
                raise ValueError(f"Bad signature length {signature_length}: {archive_path}")

            data = f.read(data_length)
            signature = f.read(signature_length)
            if len(data) != data_length or len(signature) != signature_length:
                raise ValueError(f"Truncated package file: {archive_path}")

        installer_offset = HEADER_STRUCT.size + data_length + signature_length
        if installer_length and archive_path.stat().st_size < installer_offset + installer_length:
            raise ValueError(f"Truncated installer payload: {archive_path}")

        package_data_json = data.decode("utf-8")
        return ArchiveInfo(
            header=ArchiveHeader(
                version=version,
                package_data_length=data_length,
                signature_length=signature_length,
                installer_length=installer_length,
                installer_offset=installer_offset if installer_length else None,
            ),
            package_data=json.loads(package_data_json),
            package_data_json=package_data_json,
            signature=signature,
            path=Path(archive_path),
        )
