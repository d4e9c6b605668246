"""
Classification of update-user-passwords.ps1 output.

Chunks arrive per channel with arbitrary boundaries. Each channel keeps the
trailing partial line until the next chunk (or flush), and every complete
line runs through an ordered list of (predicate, action) rules:

    strip ANSI -> drop blank -> drop shell help text -> tag info/error
    -> emit -> collect "FEHLER ... für <user>:" tokens

Each channel must be fed from a single thread; the two channels may be fed
concurrently.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from .models import Channel, LogEvent, RunOutcome
from .rules import ANSI_PATTERNS, ERROR_MARKER, FAILURE_PATTERN, HELP_PATTERNS

logger = logging.getLogger(__name__)

EventCallback = Callable[[LogEvent], None]


@dataclass
class _Line:
    channel: Channel
    text: str
    kind: str = "info"
    dropped: bool = False
    event: Optional[LogEvent] = None


def strip_ansi(text: str, patterns: Sequence[re.Pattern[str]] = ANSI_PATTERNS) -> str:
    for pattern in patterns:
        text = pattern.sub("", text)
    return text


class ProcessLogClassifier:
    def __init__(
        self,
        on_event: Optional[EventCallback] = None,
        help_patterns: Sequence[re.Pattern[str]] = HELP_PATTERNS,
        failure_pattern: re.Pattern[str] = FAILURE_PATTERN,
        error_marker: re.Pattern[str] = ERROR_MARKER,
    ) -> None:
        self._on_event = on_event
        self._help_patterns = list(help_patterns)
        self._failure_pattern = failure_pattern
        self._error_marker = error_marker

        self._buffers: Dict[Channel, str] = {ch: "" for ch in Channel}
        self._failed: Dict[str, None] = {}
        self._failed_lock = threading.Lock()

        self._rules: List[Tuple[Callable[[_Line], bool], Callable[[_Line], None]]] = [
            (lambda line: True, self._strip),
            (lambda line: not line.text.strip(), self._drop),
            (self._is_help, self._drop),
            (self._is_error, self._mark_error),
            (lambda line: True, self._emit),
            (lambda line: True, self._collect_failure),
        ]

    # --- rules ---

    def _strip(self, line: _Line) -> None:
        line.text = strip_ansi(line.text).rstrip()

    def _drop(self, line: _Line) -> None:
        line.dropped = True

    def _is_help(self, line: _Line) -> bool:
        text = line.text.strip()
        return any(p.search(text) for p in self._help_patterns)

    def _is_error(self, line: _Line) -> bool:
        return line.channel is Channel.STDERR or bool(self._error_marker.search(line.text))

    def _mark_error(self, line: _Line) -> None:
        line.kind = "error"

    def _emit(self, line: _Line) -> None:
        event = LogEvent(kind=line.kind, message=line.text, channel=line.channel)
        if event.kind == "error":
            logger.warning("[%s] %s", line.channel.value, line.text)
        else:
            logger.info("[%s] %s", line.channel.value, line.text)
        line.event = event
        if self._on_event is not None:
            self._on_event(event)

    def _collect_failure(self, line: _Line) -> None:
        match = self._failure_pattern.search(line.text)
        if match and match.group(1):
            with self._failed_lock:
                self._failed.setdefault(match.group(1), None)

    # --- streaming ---

    def _classify(self, channel: Channel, raw_line: str) -> List[LogEvent]:
        line = _Line(channel=channel, text=raw_line)
        for predicate, action in self._rules:
            if line.dropped:
                return []
            if predicate(line):
                action(line)
        return [line.event] if line.event is not None else []

    def feed(self, channel: Union[Channel, str], chunk: str) -> List[LogEvent]:
        """Add a chunk from *channel*; return the events for lines it completed."""
        channel = Channel(channel)
        data = self._buffers[channel] + chunk
        parts = data.split("\n")
        self._buffers[channel] = parts.pop()
        events: List[LogEvent] = []
        for part in parts:
            events.extend(self._classify(channel, part.rstrip("\r")))
        return events

    def feed_stdout(self, chunk: str) -> List[LogEvent]:
        return self.feed(Channel.STDOUT, chunk)

    def feed_stderr(self, chunk: str) -> List[LogEvent]:
        return self.feed(Channel.STDERR, chunk)

    def flush(self, channel: Channel) -> List[LogEvent]:
        """End of stream for *channel*: classify whatever partial line is left."""
        rest = self._buffers[channel]
        self._buffers[channel] = ""
        if not rest:
            return []
        return self._classify(channel, rest.rstrip("\r"))

    @property
    def failed_identities(self) -> List[str]:
        with self._failed_lock:
            return list(self._failed)

    def finish(self, exit_code: int) -> RunOutcome:
        for channel in Channel:
            self.flush(channel)
        return RunOutcome(
            succeeded=exit_code == 0,
            exit_code=exit_code,
            failed_identities=self.failed_identities,
        )

    def abort(self, message: str) -> RunOutcome:
        """Terminal outcome for a process that never started."""
        for channel in Channel:
            self.flush(channel)
        return RunOutcome(succeeded=False, error=message, failed_identities=self.failed_identities)
