"""Tests for the default .morphic-package archive format."""

import pytest
from cryptography.exceptions import InvalidSignature

from iodbuild.keys import KeyPair
from iodbuild.packagefile import MorphicPackageFile, read_pem
from iodbuild.packagefile.format import HEADER_STRUCT
from iodbuild.utils.jsonfiles import freeze


def test_create_then_read_with_installer(tmp_path, key_pair, verify_signature):
    installer = tmp_path / "setup.exe"
    installer.write_bytes(b"MZ" + bytes(range(200)))
    archive_path = tmp_path / "alpha.morphic-package"
    package_data = freeze({"name": "alpha", "files": ["a", "b"]})

    archive = MorphicPackageFile()
    assert archive.create(package_data, installer, key_pair, archive_path) == archive_path
    info = archive.read(archive_path)

    assert info.package_data == {"name": "alpha", "files": ["a", "b"]}
    assert info.path == archive_path
    assert info.header.installer_length == installer.stat().st_size
    offset = info.header.installer_offset
    assert offset == HEADER_STRUCT.size + info.header.package_data_length + info.header.signature_length
    assert archive_path.read_bytes()[offset:] == installer.read_bytes()
    verify_signature(info.package_data_json.encode("utf-8"), info.signature, key_pair.public_key)


def test_create_without_installer_has_no_offset(tmp_path, key_pair):
    archive_path = tmp_path / "beta.morphic-package"
    archive = MorphicPackageFile()

    archive.create({"name": "beta"}, None, key_pair, archive_path)
    info = archive.read(archive_path)

    assert info.header.installer_length == 0
    assert info.header.installer_offset is None


def test_signature_does_not_verify_tampered_data(tmp_path, key_pair, verify_signature):
    archive_path = tmp_path / "alpha.morphic-package"
    archive = MorphicPackageFile()
    archive.create({"name": "alpha"}, None, key_pair, archive_path)
    info = archive.read(archive_path)

    with pytest.raises(InvalidSignature):
        verify_signature(b'{"name": "mallory"}', info.signature, key_pair.public_key)


def test_wrong_passphrase_fails_to_sign(tmp_path, key_pair):
    bad = KeyPair(private_key=key_pair.private_key, public_key=key_pair.public_key, passphrase="wrong")

    with pytest.raises(ValueError):
        MorphicPackageFile().create({"name": "alpha"}, None, bad, tmp_path / "x.morphic-package")


def test_read_rejects_foreign_file(tmp_path):
    path = tmp_path / "junk.morphic-package"
    path.write_bytes(b"NOTAPACKAGE" * 10)

    with pytest.raises(ValueError, match="Not a package file"):
        MorphicPackageFile().read(path)


def test_read_rejects_truncated_file(tmp_path, key_pair):
    path = tmp_path / "alpha.morphic-package"
    MorphicPackageFile().create({"name": "alpha"}, None, key_pair, path)
    path.write_bytes(path.read_bytes()[:-10])

    with pytest.raises(ValueError, match="Truncated"):
        MorphicPackageFile().read(path)


def test_read_pem_ignores_surrounding_text():
    pem = "Fingerprint=sha256:abc\n\n-----BEGIN PUBLIC KEY-----\nAAEC\nAwQ=\n-----END PUBLIC KEY-----\n"

    assert read_pem(pem) == b"\x00\x01\x02\x03\x04"


def test_read_pem_without_block_fails():
    with pytest.raises(ValueError, match="No PEM block"):
        read_pem("just text")
