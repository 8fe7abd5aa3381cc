"""
Log Collector - finite, ordered, stream-tagged deployment logs.

stdout and stderr are fetched separately with runtime timestamps and merged in
timestamp order, so every line keeps the stream it was written to.
"""
import re
from datetime import timezone
from typing import List, Optional, Tuple

from atlas_local.config.logging import get_logger
from atlas_local.exceptions import NotFound, RuntimeOperationFailed
from atlas_local.models.logs import LogLine, LogsOptions, LogStream
from atlas_local.services.runtime_gateway import ContainerNotFound, RuntimeGateway, RuntimeGatewayError
from atlas_local.utils.timestamps import parse_docker_timestamp

logger = get_logger(__name__)

_TIMESTAMP_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.(\d+))?(?:Z|[+-]\d{2}:\d{2})) ?(.*)$", re.S)

# Sort key of a line: (seconds-precision time text, nanoseconds)
_SortKey = Tuple[str, int]


class _RawLine:
    __slots__ = ("stream", "message", "timestamp", "key")

    def __init__(self, stream: LogStream, message: str, timestamp: Optional[str], key: _SortKey):
        self.stream = stream
        self.message = message
        self.timestamp = timestamp
        self.key = key


class LogCollector:
    """Read deployment logs as a finite tuple of LogLine."""

    def __init__(self, runtime: RuntimeGateway):
        self.runtime = runtime

    async def collect(self, container: str, options: Optional[LogsOptions] = None) -> Tuple[LogLine, ...]:
        """
        Collect logs of a container.

        Raises:
            NotFound: If the container does not exist
            RuntimeOperationFailed: If the runtime errors
        """
        options = options or LogsOptions()
        lines: List[_RawLine] = []

        # stdout first so it wins ties in the stable sort
        for stream, selected in ((LogStream.STDOUT, options.stdout), (LogStream.STDERR, options.stderr)):
            if selected:
                lines.extend(await self._fetch(container, stream, options))

        lines.sort(key=lambda line: line.key)
        if options.tail != "all":
            lines = lines[-options.tail:] if options.tail else []

        logger.debug("logs_collected", container=container, lines=len(lines))
        return tuple(
            LogLine(
                stream=line.stream,
                message=f"{line.timestamp} {line.message}" if options.timestamps and line.timestamp else line.message,
                timestamp=parse_docker_timestamp(line.timestamp) if options.timestamps else None,
            )
            for line in lines
        )

    async def _fetch(self, container: str, stream: LogStream, options: LogsOptions) -> List[_RawLine]:
        try:
            raw = await self.runtime.container_logs(
                container,
                stdout=stream == LogStream.STDOUT,
                stderr=stream == LogStream.STDERR,
                timestamps=True,
                since=options.since,
                until=options.until,
                tail=options.tail,
            )
        except ContainerNotFound as e:
            raise NotFound(container) from e
        except RuntimeGatewayError as e:
            raise RuntimeOperationFailed("get_logs", container, str(e)) from e

        return _split_lines(raw, stream)


def _split_lines(raw: bytes, stream: LogStream) -> List[_RawLine]:
    text = raw.decode("utf-8", errors="replace")
    lines: List[_RawLine] = []
    key: _SortKey = ("", 0)

    for chunk in text.split("\n"):
        if not chunk:
            continue
        match = _TIMESTAMP_PREFIX.match(chunk)
        if match:
            timestamp, fraction, message = match.group(1), match.group(2) or "", match.group(3)
            key = (_whole_seconds(timestamp), int(fraction[:9].ljust(9, "0")))
        else:
            # Continuation of the previous line keeps its position
            timestamp, message = None, chunk
        lines.append(_RawLine(stream, message.rstrip("\r"), timestamp, key))
    return lines


def _whole_seconds(timestamp: str) -> str:
    parsed = parse_docker_timestamp(timestamp)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S") if parsed else timestamp[:19]
