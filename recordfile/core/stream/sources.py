"""
Openers for record sources on disk.

Plain files are opened in binary mode. gzip, bzip2 and xz files are
decompressed transparently, and zip and tar archives yield their first
member. Every handle returned here supports readline, seek, tell and close;
offsets are positions in the decompressed bytes.
"""

import bz2
import gzip
import lzma
import tarfile
import zipfile
import zlib
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Union

from recordfile.core.stream.errors import OpenError
from recordfile.utils.logging import get_logger

logger = get_logger(__name__)


class SourceFormat(Enum):
    """On-disk formats a record source can be read from."""
    PLAIN = "plain"
    GZIP = "gzip"
    BZIP2 = "bzip2"
    XZ = "xz"
    ZIP = "zip"
    TAR = "tar"


SUFFIX_FORMATS = {
    ".gz": SourceFormat.GZIP,
    ".bz2": SourceFormat.BZIP2,
    ".bz": SourceFormat.BZIP2,
    ".xz": SourceFormat.XZ,
    ".lzma": SourceFormat.XZ,
    ".zip": SourceFormat.ZIP,
    ".tar": SourceFormat.TAR,
    ".tgz": SourceFormat.TAR,
    ".tbz2": SourceFormat.TAR,
}

TAR_SUFFIXES = (".tar.gz", ".tar.bz2", ".tar.xz")

# Raised by source handles on a failed read, seek or tell. Corrupt
# compressed or archived data surfaces as codec errors, not OSError.
SOURCE_ERRORS = (
    OSError,
    ValueError,
    EOFError,
    lzma.LZMAError,
    zlib.error,
    zipfile.BadZipFile,
    tarfile.TarError,
)


class ArchiveMember:
    """
    A readable archive member that keeps its archive open.

    Closing the member closes the archive as well.
    """

    def __init__(self, member: BinaryIO, archive: Union[zipfile.ZipFile, tarfile.TarFile], name: str):
        self._member = member
        self._archive = archive
        self.name = name

    def readline(self, size: int = -1) -> bytes:
        return self._member.readline(size)

    def read(self, size: int = -1) -> bytes:
        return self._member.read(size)

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._member.seek(offset, whence)

    def tell(self) -> int:
        return self._member.tell()

    @property
    def closed(self) -> bool:
        return self._member.closed

    def close(self) -> None:
        try:
            self._member.close()
        finally:
            self._archive.close()

    def __repr__(self) -> str:
        return f"ArchiveMember(name={self.name!r})"


def detect_format(path: Path) -> SourceFormat:
    """
    Work out the source format from a file name.

    Args:
        path: Path to the source

    Returns:
        Detected format (PLAIN when nothing else matches)
    """
    name = path.name.lower()
    if name.endswith(TAR_SUFFIXES):
        return SourceFormat.TAR
    return SUFFIX_FORMATS.get(path.suffix.lower(), SourceFormat.PLAIN)


def _open_zip_member(path: Path) -> ArchiveMember:
    archive = zipfile.ZipFile(path)
    info = next((item for item in archive.infolist() if not item.is_dir()), None)
    if info is None:
        archive.close()
        raise OpenError(f"Zip archive has no file members: {path}")

    logger.info("Reading first zip member", path=str(path), member=info.filename)
    return ArchiveMember(archive.open(info), archive, info.filename)


def _open_tar_member(path: Path) -> ArchiveMember:
    archive = tarfile.open(path, "r:*")
    info = next((item for item in archive.getmembers() if item.isfile()), None)
    member: Optional[BinaryIO] = archive.extractfile(info) if info is not None else None
    if member is None:
        archive.close()
        raise OpenError(f"Tar archive has no regular file members: {path}")

    logger.info("Reading first tar member", path=str(path), member=info.name)
    return ArchiveMember(member, archive, info.name)


def open_source(path: Union[str, Path]) -> BinaryIO:
    """
    Open a path for record reading.

    Args:
        path: Path to a plain, compressed or archive file

    Returns:
        Binary handle positioned at the start of the text

    Raises:
        OpenError: If the format is unsupported or the file cannot be opened
    """
    path = Path(path)

    if path.suffix == ".Z":
        raise OpenError(f"compress (.Z) files are not supported: {path}")

    source_format = detect_format(path)

    try:
        if source_format is SourceFormat.GZIP:
            handle = gzip.open(path, "rb")
        elif source_format is SourceFormat.BZIP2:
            handle = bz2.open(path, "rb")
        elif source_format is SourceFormat.XZ:
            handle = lzma.open(path, "rb")
        elif source_format is SourceFormat.ZIP:
            handle = _open_zip_member(path)
        elif source_format is SourceFormat.TAR:
            handle = _open_tar_member(path)
        else:
            handle = open(path, "rb")
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
        raise OpenError(f"Cannot open {path}: {e}") from e

    logger.debug("Opened record source", path=str(path), format=source_format.value)

    return handle
