"""Package archive contract and the default archive format."""

from iodbuild.packagefile.format import MorphicPackageFile, read_pem
from iodbuild.packagefile.types import ArchiveHeader, ArchiveInfo, PackageArchive

__all__ = [
    "ArchiveHeader",
    "ArchiveInfo",
    "MorphicPackageFile",
    "PackageArchive",
    "read_pem",
]
