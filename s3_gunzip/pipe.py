"""
Bounded in-memory byte pipe connecting one writer thread to one reader thread.

The writer end only appends: bytes reach the reader in exactly the order they were written, so
whatever feeds the writer must deliver its data sequentially. A download that fetches ranged
parts in parallel has to be reordered before it reaches the pipe.
"""
from threading import Condition
from typing import Optional, Tuple

from .s3 import PIPE_CAPACITY


class PipeAbortedError(OSError):
    """The writer end was aborted, so the data seen by the reader is incomplete."""


class PipeClosedError(BrokenPipeError):
    """The reader end was closed, so nothing more can be written."""


class _PipeBuffer:
    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"Pipe capacity must be positive, got {capacity}")

        self.capacity = capacity
        self.condition = Condition()
        self.buffer = bytearray()
        self.writer_closed = False
        self.reader_closed = False
        self.error: Optional[BaseException] = None
        self.bytes_written = 0
        self.bytes_read = 0


class PipeWriter:
    def __init__(self, state: _PipeBuffer):
        self._state = state

    @property
    def bytes_written(self) -> int:
        return self._state.bytes_written

    @property
    def closed(self) -> bool:
        return self._state.writer_closed

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def write(self, data: bytes) -> int:
        """Block until all of `data` is buffered. Raises PipeClosedError once the reader is gone."""
        state = self._state
        view = memoryview(data)
        with state.condition:
            while view:
                if state.writer_closed:
                    raise ValueError("Write to a closed pipe writer")

                while len(state.buffer) >= state.capacity and not state.reader_closed:
                    state.condition.wait()

                if state.reader_closed:
                    raise PipeClosedError("Pipe reader is closed")

                free = state.capacity - len(state.buffer)
                state.buffer += view[:free]
                state.bytes_written += min(free, len(view))
                view = view[free:]
                state.condition.notify_all()

        return len(data)

    def close(self) -> None:
        """Signal end of stream to the reader."""
        with self._state.condition:
            self._state.writer_closed = True
            self._state.condition.notify_all()

    def abort(self, error: BaseException) -> None:
        """Close the writer end so that the reader raises instead of seeing end of stream."""
        with self._state.condition:
            if not self._state.writer_closed:
                self._state.error = error
                self._state.writer_closed = True
            self._state.condition.notify_all()


class PipeReader:
    def __init__(self, state: _PipeBuffer):
        self._state = state

    @property
    def bytes_read(self) -> int:
        return self._state.bytes_read

    @property
    def closed(self) -> bool:
        return self._state.reader_closed

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def read(self, size: int = -1) -> bytes:
        if size is None or size < 0:
            return self._read_all()

        if size == 0:
            return b""

        state = self._state
        with state.condition:
            if state.reader_closed:
                raise ValueError("Read from a closed pipe reader")

            while not state.buffer and not state.writer_closed:
                state.condition.wait()

            if state.error is not None:
                raise PipeAbortedError("Pipe writer was aborted") from state.error

            chunk = bytes(state.buffer[:size])
            del state.buffer[:size]
            state.bytes_read += len(chunk)
            state.condition.notify_all()
            return chunk

    def _read_all(self) -> bytes:
        chunks = []
        while True:
            chunk = self.read(self._state.capacity)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def close(self) -> None:
        """Discard anything still buffered and make further writes fail."""
        with self._state.condition:
            self._state.reader_closed = True
            self._state.buffer.clear()
            self._state.condition.notify_all()


def open_pipe(capacity: int = PIPE_CAPACITY) -> Tuple[PipeReader, PipeWriter]:
    state = _PipeBuffer(capacity)
    return PipeReader(state), PipeWriter(state)
