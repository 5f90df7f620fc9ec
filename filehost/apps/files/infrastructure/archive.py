"""Streaming zip archive generation.

``zipfile`` writes to any object with a ``write`` method. When the target
cannot ``tell``/``seek`` it emits data descriptors after each member, so
the archive can be produced front to back and handed out chunk by chunk
without holding it in memory.
"""

import zipfile
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final, final

_MIN_ZIP_YEAR: Final = 1980
_DIRECTORY_ATTRS: Final = (0o40775 << 16) | 0x10  # drwxrwxr-x + MS-DOS dir
# Deflate can slightly grow incompressible data
_ZIP64_SAFETY_FACTOR: Final = 1.05


@final
@dataclass(frozen=True, slots=True)
class ArchiveEntry:
    """One member of a streamed archive.

    Directories have a path ending with ``/`` and no ``open`` callable.
    """

    path: str
    modified: datetime
    size: int = 0
    open: Callable[[], Iterator[bytes]] | None = None

    @property
    def is_dir(self) -> bool:
        """Whether this entry is a directory."""
        return self.path.endswith('/')


class _ChunkSink:
    """Write-only buffer drained by the archive generator."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def write(self, data: bytes) -> int:
        self._buffer.extend(data)
        return len(data)

    def flush(self) -> None:
        """Nothing to flush, data is drained explicitly."""

    def drain(self) -> bytes:
        data = bytes(self._buffer)
        self._buffer.clear()
        return data


def _zip_timestamp(moment: datetime) -> tuple[int, int, int, int, int, int]:
    """Convert a datetime into a zip member timestamp (UTC)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(UTC)
    if moment.year < _MIN_ZIP_YEAR:
        return (_MIN_ZIP_YEAR, 1, 1, 0, 0, 0)
    return (
        moment.year,
        moment.month,
        moment.day,
        moment.hour,
        moment.minute,
        moment.second,
    )


def stream_zip(entries: Iterable[ArchiveEntry]) -> Iterator[bytes]:
    """Produce a zip archive incrementally.

    Member content is pulled from each entry's ``open()`` iterator only
    while that member is being written. Closing the returned generator
    early closes the member iterator being read.

    Args:
        entries: Archive members in output order.

    Yields:
        Consecutive chunks of the zip archive.
    """
    sink = _ChunkSink()
    with zipfile.ZipFile(
        sink,
        mode='w',
        compression=zipfile.ZIP_DEFLATED,
    ) as archive:
        for entry in entries:
            info = zipfile.ZipInfo(
                entry.path,
                date_time=_zip_timestamp(entry.modified),
            )
            if entry.is_dir:
                info.external_attr = _DIRECTORY_ATTRS
                info.CRC = 0
                info.compress_size = 0
                info.file_size = 0
                archive.mkdir(info)
            else:
                info.compress_type = zipfile.ZIP_DEFLATED
                force_zip64 = (
                    entry.size * _ZIP64_SAFETY_FACTOR > zipfile.ZIP64_LIMIT
                )
                with archive.open(
                    info,
                    mode='w',
                    force_zip64=force_zip64,
                ) as member:
                    chunks = entry.open()
                    try:
                        for chunk in chunks:
                            member.write(chunk)
                            data = sink.drain()
                            if data:
                                yield data
                    finally:
                        close = getattr(chunks, 'close', None)
                        if close is not None:
                            close()

            data = sink.drain()
            if data:
                yield data

    tail = sink.drain()
    if tail:
        yield tail
