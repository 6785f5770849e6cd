"""Concurrent draining of a child's stdout and stderr."""

import asyncio
import codecs
import logging
import re
from collections.abc import Callable

logger = logging.getLogger(__name__)

LINE_BREAK = re.compile(r"\r\n|\r|\n")


class TextBuffer:
    """Append-only text accumulator for one stream."""

    def __init__(self):
        self._parts: list[str] = []

    def append(self, text: str) -> None:
        if text:
            self._parts.append(text)

    def getvalue(self) -> str:
        return "".join(self._parts)


class LineSplitter:
    """Splits decoded text into lines on ``\\n``, ``\\r\\n`` and bare ``\\r``.

    ffmpeg redraws its stats line with carriage returns, so ``\\r`` alone
    ends a line. A trailing ``\\r`` is held back until the next chunk shows
    whether it starts a ``\\r\\n`` pair.
    """

    def __init__(self):
        self._pending = ""

    def feed(self, text: str) -> list[str]:
        data = self._pending + text
        lines = []
        start = 0
        for match in LINE_BREAK.finditer(data):
            if match.group() == "\r" and match.end() == len(data):
                break
            lines.append(data[start : match.start()])
            start = match.end()
        self._pending = data[start:]
        return lines

    def flush(self) -> list[str]:
        rest, self._pending = self._pending, ""
        rest = rest.removesuffix("\r")
        return [rest] if rest else []


async def drain_stream(
    stream: asyncio.StreamReader,
    buffer: TextBuffer,
    on_line: Callable[[str], None] | None = None,
    chunk_size: int = 4096,
    encoding: str = "utf-8",
) -> None:
    """Read ``stream`` until end-of-stream, keeping the exact text in ``buffer``."""
    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
    splitter = LineSplitter()

    while True:
        chunk = await stream.read(chunk_size)
        if not chunk:
            break
        text = decoder.decode(chunk)
        buffer.append(text)
        if on_line:
            for line in splitter.feed(text):
                on_line(line)

    tail = decoder.decode(b"", final=True)
    buffer.append(tail)
    if on_line:
        for line in splitter.feed(tail) + splitter.flush():
            on_line(line)


class StreamCollector:
    """Drains both redirected streams of a process at the same time.

    Only stderr lines are forwarded to ``on_stderr_line``. The collector and
    its buffers belong to the event loop that runs the reader tasks and are
    not safe to share with other threads.
    """

    def __init__(
        self,
        on_stderr_line: Callable[[str], None] | None = None,
        chunk_size: int = 4096,
        encoding: str = "utf-8",
    ):
        self.on_stderr_line = on_stderr_line
        self.chunk_size = chunk_size
        self.encoding = encoding
        self.stdout = TextBuffer()
        self.stderr = TextBuffer()

    def start(self, process: asyncio.subprocess.Process) -> list[asyncio.Task]:
        """Start one reader task per redirected stream."""
        tasks = []
        if process.stdout is not None:
            tasks.append(
                asyncio.create_task(
                    drain_stream(process.stdout, self.stdout, None, self.chunk_size, self.encoding),
                    name=f"stdout-{process.pid}",
                )
            )
        if process.stderr is not None:
            tasks.append(
                asyncio.create_task(
                    drain_stream(
                        process.stderr,
                        self.stderr,
                        self.on_stderr_line,
                        self.chunk_size,
                        self.encoding,
                    ),
                    name=f"stderr-{process.pid}",
                )
            )
        logger.debug("Draining %d stream(s) of pid %s", len(tasks), process.pid)
        return tasks
