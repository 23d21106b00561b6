"""Append-only line store backed by a single text file.

The file is the only shared resource. Writers get an Appender, readers get a
Reader; both are thin views over the same LogFile. An append is one
newline-terminated buffer handed to a single O_APPEND write, so concurrent
appends never interleave partial lines. Readers only return bytes up to the
last newline, so an append that is still in flight never shows up torn.
An appender that finds the file ending mid-line starts on a fresh line, so a
torn tail costs only itself and never the next record.
"""

import logging
import os

import aiofiles

from logtelemetry.errors import StoreReadError, StoreWriteError

logger = logging.getLogger(__name__)

ENCODING = "utf-8"


class LogFile:
    """Location of the store on disk."""

    def __init__(self, path: str) -> None:
        self.path = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def appender(self) -> "Appender":
        return Appender(self)

    def reader(self) -> "Reader":
        return Reader(self)


class Appender:
    """Write role: adds exactly one line per call, never rewrites."""

    def __init__(self, log_file: LogFile) -> None:
        self._path = log_file.path

    async def append(self, line: str) -> None:
        """Append one line. Raises StoreWriteError on any I/O failure."""
        if "\n" in line or "\r" in line:
            raise ValueError("store lines must not contain line breaks")

        data = (line + "\n").encode(ENCODING)
        try:
            # buffering=0 keeps this a single write() on an O_APPEND descriptor
            async with aiofiles.open(self._path, mode="a+b", buffering=0) as f:
                if not await _ends_with_newline(f):
                    # fence off an unterminated tail left by a crash or older writer
                    data = b"\n" + data
                written = await f.write(data)
                if written != len(data):
                    end = await f.tell()
                    discard_partial(f.fileno(), end, written)
        except OSError as exc:
            logger.error("Failed to append to %s: %s", self._path, exc)
            raise StoreWriteError(f"append to {self._path} failed: {exc}") from exc

        if written != len(data):
            logger.error(
                "Short write to %s: %d of %d bytes", self._path, written, len(data)
            )
            raise StoreWriteError(
                f"short write to {self._path}: {written} of {len(data)} bytes"
            )


async def _ends_with_newline(f) -> bool:
    """True for an empty file or one whose last byte is a newline."""
    size = await f.seek(0, os.SEEK_END)
    if size == 0:
        return True
    await f.seek(size - 1)
    return await f.read(1) == b"\n"


def discard_partial(fd: int, end: int, written: int) -> None:
    """Cut a short write back off the file.

    Skipped if another append has already landed after it; the next append
    then starts on a fresh line anyway.
    """
    if written and os.fstat(fd).st_size == end:
        os.ftruncate(fd, end - written)


class Reader:
    """Read role: returns every complete line in on-disk order."""

    def __init__(self, log_file: LogFile) -> None:
        self._path = log_file.path

    async def read_all(self) -> list[str]:
        """Return all complete lines. A missing store reads as empty."""
        try:
            async with aiofiles.open(self._path, mode="rb") as f:
                data = await f.read()
        except FileNotFoundError:
            return []
        except OSError as exc:
            logger.error("Failed to read %s: %s", self._path, exc)
            raise StoreReadError(f"read of {self._path} failed: {exc}") from exc

        end = data.rfind(b"\n")
        if end < 0:
            return []
        text = data[:end].decode(ENCODING, errors="replace")
        return text.split("\n")
