"""
Runs update-user-passwords.ps1 against the loaded roster.

One run = one temp CSV + one PowerShell process. stdout and stderr are
pumped by two threads into a ProcessLogClassifier; the temp CSV is removed
once the process has exited or failed to start.
"""

from __future__ import annotations

import codecs
import logging
import os
import shutil
import subprocess
import threading
from typing import IO, Dict, List, Mapping, Optional, Sequence

from .classifier import EventCallback, ProcessLogClassifier
from .config import Settings, load_settings
from .errors import NoRecordsError
from .models import Channel, IdentityRecord, RunOutcome
from .roster import write_temp_csv
from .rules import CSV_PATH_ENV, SHELL_ARGS, SHELL_CANDIDATES, SHELL_ENV

logger = logging.getLogger(__name__)

READ_CHUNK = 4096


def detect_shell(configured: Optional[str] = None) -> str:
    if configured:
        return configured
    for candidate in SHELL_CANDIDATES:
        if shutil.which(candidate):
            return candidate
    return SHELL_CANDIDATES[0]


def build_command(shell: str, script_path: str, csv_path: str) -> List[str]:
    return [shell, *SHELL_ARGS, "-File", script_path, "-CSVPath", csv_path]


def build_env(csv_path: str, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    env = dict(os.environ if base is None else base)
    env.update(SHELL_ENV)
    env[CSV_PATH_ENV] = csv_path
    return env


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except OSError as exc:
        logger.debug("could not remove temp CSV %s: %s", path, exc)


class UpdateOrchestrator:
    def __init__(self, settings: Optional[Settings] = None, on_event: Optional[EventCallback] = None):
        self.settings = settings or load_settings()
        self.on_event = on_event

    def run(self, records: Sequence[IdentityRecord]) -> RunOutcome:
        if not records:
            raise NoRecordsError("Keine CSV-Daten geladen")

        csv_path = write_temp_csv(records, self.settings.temp_dir)
        try:
            return self._execute(csv_path)
        finally:
            _remove_quietly(csv_path)

    def _execute(self, csv_path: str) -> RunOutcome:
        classifier = ProcessLogClassifier(on_event=self.on_event)
        shell = detect_shell(self.settings.shell)
        cmd = build_command(shell, self.settings.script_path, csv_path)
        logger.info("starting %s", " ".join(cmd))

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=os.path.dirname(csv_path),
                env=build_env(csv_path),
            )
        except OSError as exc:
            logger.error("could not start %s: %s", shell, exc)
            return classifier.abort(str(exc))

        reader_errors: List[str] = []
        readers = [
            threading.Thread(
                target=self._pump,
                args=(proc.stdout, Channel.STDOUT, classifier, reader_errors),
                daemon=True,
            ),
            threading.Thread(
                target=self._pump,
                args=(proc.stderr, Channel.STDERR, classifier, reader_errors),
                daemon=True,
            ),
        ]
        for reader in readers:
            reader.start()
        exit_code = proc.wait()
        for reader in readers:
            reader.join()

        try:
            outcome = classifier.finish(exit_code)
        except Exception as exc:
            logger.exception("flushing password script output failed")
            reader_errors.append(f"flush: {exc}")
            outcome = RunOutcome(
                succeeded=exit_code == 0,
                exit_code=exit_code,
                failed_identities=classifier.failed_identities,
            )
        if reader_errors:
            outcome.error = "; ".join(reader_errors)
        logger.info(
            "password script exited with %s (%d failed identities)",
            exit_code, len(outcome.failed_identities),
        )
        return outcome

    def _pump(
        self,
        stream: IO[bytes],
        channel: Channel,
        classifier: ProcessLogClassifier,
        errors: List[str],
    ) -> None:
        """Feed *stream* to the classifier; after a failure keep draining so the child never blocks."""
        failure: Optional[Exception] = None
        decoder = codecs.getincrementaldecoder(self.settings.output_encoding)(errors="replace")
        with stream:
            for chunk in iter(lambda: stream.read1(READ_CHUNK), b""):
                if failure is not None:
                    continue
                try:
                    classifier.feed(channel, decoder.decode(chunk))
                except Exception as exc:
                    logger.exception("processing %s output failed", channel.value)
                    failure = exc
            if failure is None:
                try:
                    classifier.feed(channel, decoder.decode(b"", final=True))
                except Exception as exc:
                    logger.exception("processing %s output failed", channel.value)
                    failure = exc
        if failure is not None:
            errors.append(f"{channel.value}: {failure}")
