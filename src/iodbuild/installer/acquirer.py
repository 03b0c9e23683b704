"""Installer acquirer: resolves a task's installer reference to a local file."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

import requests

from iodbuild.errors import AcquisitionError
from iodbuild.ui import Reporter

if TYPE_CHECKING:
    from iodbuild.manifest.types import BuildTask

REMOTE_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
CACHE_SUFFIX = "-installer"
PARTIAL_SUFFIX = ".part"
CHUNK_SIZE = 1024 * 1024


def is_remote(installer_ref: str) -> bool:
    """True when the reference is an ``http://`` or ``https://`` URL."""
    return bool(REMOTE_PATTERN.match(installer_ref))


def cache_path_for(downloads_dir: Path, package_name: str) -> Path:
    """Cache file used for a package's downloaded installer."""
    return downloads_dir / f"{package_name}{CACHE_SUFFIX}"


def download_file(url: str, save_as: Path, session: requests.Session | None = None) -> Path:
    """Stream ``url`` to ``save_as``.

    The body is written to a ``.part`` file that is renamed into place only after
    the full response has been written, so ``save_as`` never holds a partial download.

    Raises:
        AcquisitionError: On transport failure or a non-200 response
    """
    if session is None:
        with requests.Session() as http:
            return download_file(url, save_as, http)

    partial = save_as.with_name(save_as.name + PARTIAL_SUFFIX)
    try:
        with session.get(url, stream=True) as response:
            if response.status_code != 200:
                raise AcquisitionError(
                    f"Unable to download package: {response.status_code} {response.reason}",
                    context={"url": url, "status": response.status_code},
                )
            with open(partial, "wb") as out:
                for chunk in response.iter_content(CHUNK_SIZE):
                    if chunk:
                        out.write(chunk)
        os.replace(partial, save_as)
    except requests.RequestException as e:
        partial.unlink(missing_ok=True)
        raise AcquisitionError(
            f"Unable to download package: {e}",
            context={"url": url},
        ) from e
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    return save_as


class InstallerAcquirer:
    """Resolves installer references, downloading remote installers once into a shared cache."""

    def __init__(
        self,
        downloads_dir: Path,
        *,
        session: requests.Session | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self.downloads_dir = downloads_dir
        self.session = session
        self.reporter = reporter or Reporter()

    def resolve(self, task: BuildTask) -> Path | None:
        """Return the local installer path for ``task``, or ``None`` if it declares no installer.

        Local references are resolved against the task's source directory and are
        not checked for existence here.
        """
        ref = task.installer_ref
        if not ref:
            return None
        if not is_remote(ref):
            return (task.source_dir / ref).resolve()

        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        target = cache_path_for(self.downloads_dir, task.name)
        if target.exists():
            self.reporter.warn(f"Using cached installer download for: {ref}")
            return target

        self.reporter.step(f"Downloading installer from: {ref}")
        try:
            download_file(ref, target, session=self.session)
        except AcquisitionError as e:
            e.context.setdefault("package", task.name)
            raise
        self.reporter.success(f"Downloaded installer to: {target}")
        return target
