"""Tests for streaming zip archives."""

import random
import zipfile
from datetime import UTC, datetime
from io import BytesIO

from filehost.apps.files.infrastructure.archive import (
    ArchiveEntry,
    stream_zip,
)

_MODIFIED = datetime(2024, 5, 17, 10, 30, tzinfo=UTC)


def _content(*chunks):
    return lambda: iter(chunks)


def _read_archive(chunks):
    return zipfile.ZipFile(BytesIO(b''.join(chunks)))


def test_stream_zip_round_trip():
    """Test archive members, directories and content."""
    entries = [
        ArchiveEntry('a.txt', _MODIFIED, 5, _content(b'hel', b'lo')),
        ArchiveEntry('docs/', _MODIFIED),
        ArchiveEntry('docs/b.txt', _MODIFIED, 3, _content(b'bye')),
        ArchiveEntry('empty/', _MODIFIED),
    ]

    archive = _read_archive(stream_zip(entries))

    assert archive.namelist() == ['a.txt', 'docs/', 'docs/b.txt', 'empty/']
    assert archive.read('a.txt') == b'hello'
    assert archive.read('docs/b.txt') == b'bye'
    assert archive.getinfo('empty/').is_dir()
    assert archive.testzip() is None


def test_stream_zip_member_timestamp():
    """Test member timestamps come from the entry."""
    entries = [ArchiveEntry('a.txt', _MODIFIED, 1, _content(b'a'))]

    info = _read_archive(stream_zip(entries)).getinfo('a.txt')

    assert info.date_time == (2024, 5, 17, 10, 30, 0)


def test_stream_zip_clamps_old_timestamps():
    """Test dates before 1980 are stored as the zip epoch."""
    entries = [
        ArchiveEntry('a.txt', datetime(1970, 1, 1), 1, _content(b'a')),
    ]

    info = _read_archive(stream_zip(entries)).getinfo('a.txt')

    assert info.date_time == (1980, 1, 1, 0, 0, 0)


def test_stream_zip_empty():
    """Test an archive without members is still valid."""
    assert _read_archive(stream_zip([])).namelist() == []


def test_stream_zip_is_lazy():
    """Test member content is not opened before iteration."""
    opened = []

    def content():
        opened.append(True)
        yield b'data'

    chunks = stream_zip([ArchiveEntry('a.txt', _MODIFIED, 4, content)])

    assert opened == []
    b''.join(chunks)
    assert opened == [True]


def test_stream_zip_closed_early_closes_member():
    """Test abandoning the archive closes the member being read."""
    closed = []
    rng = random.Random(0)

    def content():
        try:
            for _ in range(8):
                yield rng.randbytes(64 * 1024)
        finally:
            closed.append(True)

    chunks = stream_zip([
        ArchiveEntry('big.bin', _MODIFIED, 8 * 64 * 1024, content),
    ])

    assert next(chunks)
    chunks.close()

    assert closed == [True]


def test_stream_zip_accepts_plain_iterators():
    """Test content iterators without a close method are supported."""
    entries = [
        ArchiveEntry('a.txt', _MODIFIED, 2, lambda: iter([b'hi'])),
        ArchiveEntry('b.txt', _MODIFIED, 3, lambda: iter((b'b', b'ye'))),
    ]

    archive = _read_archive(stream_zip(entries))

    assert archive.read('a.txt') == b'hi'
    assert archive.read('b.txt') == b'bye'
