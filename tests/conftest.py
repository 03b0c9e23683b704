"""Pytest configuration and fixtures for iodbuild tests."""
import json
from dataclasses import replace
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from iodbuild.config import IODBUILD_CONFIG_ENV, build_config
from iodbuild.keys import KeyPair, generate_key_pair
from iodbuild.packagefile import ArchiveHeader, ArchiveInfo
from iodbuild.ui import Reporter
from iodbuild.utils.jsonfiles import thaw

TEST_PASSPHRASE = "correct horse battery staple"
TEST_KEY_SIZE = 1024


def pytest_sessionfinish(session, exitstatus):
    """Check that coverage data was collected if --cov was requested.

    This prevents silent "no data collected" scenarios that produce 0% coverage
    without failing the test run.
    """
    cov_enabled = any("--cov" in str(arg) for arg in session.config.args)

    if not cov_enabled:
        return

    cwd = Path.cwd()
    coverage_files = list(cwd.glob(".coverage*"))

    if not coverage_files:
        pytest.exit(
            "Coverage was enabled but no data was collected. "
            "This suggests tests are not importing/executing package code. "
            "Check that tests import from 'iodbuild' (the package) not 'src/iodbuild' (filesystem path).",
            returncode=1
        )


@pytest.fixture(autouse=True)
def _no_ambient_config(monkeypatch):
    """Keep a developer's IODBUILD_CONFIG out of the tests."""
    monkeypatch.delenv(IODBUILD_CONFIG_ENV, raising=False)


@pytest.fixture
def quiet_reporter() -> Reporter:
    return Reporter(quiet=True)


@pytest.fixture(scope="session")
def signing_keys(tmp_path_factory) -> tuple[Path, Path]:
    """A small passphrase-protected key pair shared by the whole session."""
    key_dir = tmp_path_factory.mktemp("keys")
    config = build_config(
        {"key": key_dir / "iod-package-key", "keypass": TEST_PASSPHRASE, "quiet": True},
        cwd=key_dir,
    )
    generated = generate_key_pair(replace(config, key_size=TEST_KEY_SIZE), Reporter(quiet=True))
    return generated.private_key_path, generated.public_key_path


@pytest.fixture
def signing_passphrase() -> str:
    return TEST_PASSPHRASE


@pytest.fixture
def key_pair(signing_keys) -> KeyPair:
    """Key pair loaded from the session signing keys with the right passphrase."""
    private_key, public_key = signing_keys
    return KeyPair(
        private_key=private_key.read_bytes(),
        public_key=public_key.read_bytes(),
        passphrase=TEST_PASSPHRASE,
    )


@pytest.fixture
def verify_signature():
    """Check an RSA PKCS#1 v1.5 SHA-256 signature against a public key file's PEM block.

    Raises ``cryptography.exceptions.InvalidSignature`` on mismatch.
    """

    def _verify(data: bytes, signature: bytes, public_key_pem: bytes) -> None:
        start = public_key_pem.find(b"-----BEGIN ")
        public_key = serialization.load_pem_public_key(public_key_pem[max(start, 0):])
        public_key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())

    return _verify


@pytest.fixture
def make_package():
    """Factory writing a package source directory with build definition and package data."""

    def _make(
        root: Path,
        dirname: str,
        name: str | None,
        *,
        installer: str | None = "setup.exe",
        installer_bytes: bytes | None = b"MZ fake installer",
        category: str | None = None,
        build_ext: str = ".json",
        data_ext: str = ".json",
        extra_data: dict | None = None,
    ) -> Path:
        pkg_dir = root / dirname
        pkg_dir.mkdir(parents=True, exist_ok=True)

        package_data: dict = {"type": "installer"}
        if name is not None:
            package_data["name"] = name
        package_data.update(extra_data or {})
        (pkg_dir / f"packageData{data_ext}").write_text(json.dumps(package_data), encoding="utf-8")

        definition: dict = {"packageData": "packageData.json"}
        if installer is not None:
            definition["installer"] = installer
            if installer_bytes is not None and not installer.startswith("http"):
                (pkg_dir / installer).write_bytes(installer_bytes)
        if category is not None:
            definition["category"] = category
        (pkg_dir / f"build{build_ext}").write_text(json.dumps(definition), encoding="utf-8")
        return pkg_dir

    return _make


class FakeArchive:
    """In-memory stand-in for the archive library.

    ``create`` writes the package data as JSON so ``read`` can parse it back.
    """

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.created: list[dict] = []
        self.read_paths: list[Path] = []

    def create(self, package_data, installer_path, key_pair, output_path):
        name = package_data["name"]
        self.created.append(
            {"name": name, "installer": installer_path, "key_pair": key_pair, "output": output_path}
        )
        if name in self.fail_on:
            raise ValueError(f"bad decrypt for {name}")
        installer = installer_path.read_bytes() if installer_path is not None else b""
        output_path.write_text(
            json.dumps({"packageData": thaw(package_data), "installerLength": len(installer)}),
            encoding="utf-8",
        )
        return output_path

    def read(self, archive_path):
        self.read_paths.append(archive_path)
        stored = json.loads(archive_path.read_text(encoding="utf-8"))
        data_json = json.dumps(stored["packageData"])
        installer_length = stored["installerLength"]
        return ArchiveInfo(
            header=ArchiveHeader(
                version=1,
                package_data_length=len(data_json),
                signature_length=3,
                installer_length=installer_length,
                installer_offset=100 if installer_length else None,
            ),
            package_data=stored["packageData"],
            package_data_json=data_json,
            signature=b"sig",
            path=archive_path,
        )


@pytest.fixture
def fake_archive() -> FakeArchive:
    return FakeArchive()


@pytest.fixture
def failing_archive():
    """Factory for a fake archive that fails to create the named packages."""

    def _make(*names: str) -> FakeArchive:
        return FakeArchive(fail_on=set(names))

    return _make
