"""
Gunzip a byte stream which can only be read once, front to back.
"""
from gzip import BadGzipFile, GzipFile
from typing import BinaryIO, Union

from .pipe import PipeReader

GZIP_MAGIC_NUMBER = b"\x1f\x8b"

Source = Union[PipeReader, BinaryIO]


class PrefixedReader:
    """Replays `prefix`, already read from `source`, before the rest of `source`."""

    def __init__(self, prefix: bytes, source: Source):
        self.prefix = prefix
        self.source = source

    def read(self, size: int = -1) -> bytes:
        if not self.prefix:
            return self.source.read(size)

        if size < 0:
            data = self.prefix + self.source.read(size)
            self.prefix = b""
            return data

        data, self.prefix = self.prefix[:size], self.prefix[size:]
        return data


def read_magic_number(source: Source) -> bytes:
    magic_number = b""
    while len(magic_number) < len(GZIP_MAGIC_NUMBER):
        chunk = source.read(len(GZIP_MAGIC_NUMBER) - len(magic_number))
        if not chunk:
            break
        magic_number += chunk

    if not magic_number:
        raise BadGzipFile("Empty file is not a gzip stream")
    if magic_number != GZIP_MAGIC_NUMBER:
        raise BadGzipFile(f"Not a gzipped file ({magic_number!r})")

    return magic_number


def open_gunzip_reader(source: Source) -> GzipFile:
    """
    Read-only file-like object yielding the gunzipped contents of `source`.

    The gzip header is parsed before returning, so a source which is not gzip fails before
    anything is uploaded. Corruption further into the stream surfaces from `read`. Closing the
    returned reader leaves `source` open.
    """
    gzip_file = GzipFile(fileobj=PrefixedReader(read_magic_number(source), source), mode="rb")
    gzip_file.peek(1)
    return gzip_file
