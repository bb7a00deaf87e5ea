"""Minimal tar archive writer for injecting files into the runner container.

Only regular files are produced, so destination directories must already
exist. Docker's archive extraction endpoint accepts the resulting stream
as-is.

Usage:
    writer = TarArchiveWriter()
    writer.write("Program.cs", source_bytes)
    data = writer.finish()
"""

import time
from typing import List, Mapping, Optional, Union

import structlog

from ..models.errors import ArchiveFormatError

logger = structlog.get_logger(__name__)

BLOCK_SIZE = 512
NAME_SIZE = 100

# Numeric fields hold zero-padded octal digits followed by a NUL
_MODE_DIGITS = 7
_ID_DIGITS = 7
_SIZE_DIGITS = 11
_MTIME_DIGITS = 11
MAX_ENTRY_SIZE = 8**_SIZE_DIGITS - 1

_REGTYPE = b"0"
_USTAR_MAGIC = b"ustar\x00"
_USTAR_VERSION = b"00"

# (offset, length) of every header field
_NAME = (0, 100)
_MODE = (100, 8)
_UID = (108, 8)
_GID = (116, 8)
_SIZE = (124, 12)
_MTIME = (136, 12)
_CHKSUM = (148, 8)
_TYPEFLAG = (156, 1)
_MAGIC = (257, 6)
_VERSION = (263, 2)


def _octal(value: int, digits: int, field: str) -> bytes:
    if value < 0 or value >= 8**digits:
        raise ArchiveFormatError(
            f"Value {value} does not fit the {digits}-digit octal {field} field"
        )
    return ("%0*o" % (digits, value)).encode("ascii") + b"\x00"


def _put(header: bytearray, span, data: bytes) -> None:
    offset, length = span
    header[offset : offset + len(data)] = data[:length]


def header_checksum(header: bytes) -> int:
    """Sum of all header bytes with the checksum field read as spaces."""
    offset, length = _CHKSUM
    return (
        sum(header[:offset]) + length * ord(" ") + sum(header[offset + length :])
    )


def _normalize_path(path: str) -> str:
    if not path:
        raise ArchiveFormatError("Archive entry path is empty")
    if "\\" in path:
        raise ArchiveFormatError(f"Archive entry path uses backslashes: {path!r}")
    if path.startswith("/"):
        raise ArchiveFormatError(f"Archive entry path must be relative: {path!r}")
    parts = path.split("/")
    if any(part in ("", ".", "..") for part in parts):
        raise ArchiveFormatError(f"Archive entry path is not normalized: {path!r}")
    return path


class TarArchiveWriter:
    """Serializes in-memory files into a tar byte stream.

    Entries appear in the order they are written. ``finish()`` appends the
    two zero blocks that mark end-of-archive and returns the whole stream.
    """

    def __init__(self):
        self._blocks: List[bytes] = []
        self._paths = set()
        self._finished = False

    def write(
        self,
        path: str,
        data: bytes,
        mode: int = 0o644,
        mtime: Optional[int] = None,
    ) -> None:
        """Append one regular file entry.

        Raises:
            ArchiveFormatError: If the path is invalid, longer than 100 bytes
                or repeated, or a numeric field does not fit its width.
        """
        if self._finished:
            raise ArchiveFormatError("Archive is already finished")

        path = _normalize_path(path)
        name = path.encode("utf-8")
        if len(name) > NAME_SIZE:
            raise ArchiveFormatError(
                f"Archive entry path exceeds {NAME_SIZE} bytes: {path!r}"
            )
        if path in self._paths:
            raise ArchiveFormatError(f"Duplicate archive entry path: {path!r}")
        if len(data) > MAX_ENTRY_SIZE:
            raise ArchiveFormatError(
                f"Archive entry {path!r} is {len(data)} bytes, "
                f"limit is {MAX_ENTRY_SIZE}"
            )
        if mtime is None:
            mtime = int(time.time())

        header = bytearray(BLOCK_SIZE)
        _put(header, _NAME, name)
        _put(header, _MODE, _octal(mode & 0o7777, _MODE_DIGITS, "mode"))
        _put(header, _UID, _octal(0, _ID_DIGITS, "uid"))
        _put(header, _GID, _octal(0, _ID_DIGITS, "gid"))
        _put(header, _SIZE, _octal(len(data), _SIZE_DIGITS, "size"))
        _put(header, _MTIME, _octal(int(mtime), _MTIME_DIGITS, "mtime"))
        _put(header, _TYPEFLAG, _REGTYPE)
        _put(header, _MAGIC, _USTAR_MAGIC)
        _put(header, _VERSION, _USTAR_VERSION)
        checksum = ("%06o" % header_checksum(header)).encode("ascii")
        _put(header, _CHKSUM, checksum + b"\x00 ")

        self._blocks.append(bytes(header))
        self._blocks.append(bytes(data))
        remainder = len(data) % BLOCK_SIZE
        if remainder:
            self._blocks.append(b"\x00" * (BLOCK_SIZE - remainder))
        self._paths.add(path)

    def finish(self) -> bytes:
        """Terminate the archive and return its bytes."""
        if not self._finished:
            self._blocks.append(b"\x00" * (BLOCK_SIZE * 2))
            self._finished = True
        return b"".join(self._blocks)

    def __len__(self) -> int:
        return len(self._paths)


def build_archive(
    files: Mapping[str, Union[str, bytes]],
    mode: int = 0o644,
    mtime: Optional[int] = None,
) -> bytes:
    """Build a tar archive from a path -> content mapping.

    String content is encoded as UTF-8.
    """
    writer = TarArchiveWriter()
    for path, content in files.items():
        data = content.encode("utf-8") if isinstance(content, str) else content
        writer.write(path, data, mode=mode, mtime=mtime)
    archive = writer.finish()
    logger.debug("Built archive", entries=len(writer), size=len(archive))
    return archive
