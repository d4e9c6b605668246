from __future__ import annotations

import codecs
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import ConfigurationError
from .rules import SCRIPT_NAME

DEFAULT_SCRIPT_PATH = Path(__file__).resolve().parent.parent / SCRIPT_NAME


@dataclass(frozen=True)
class Settings:
    script_path: str = str(DEFAULT_SCRIPT_PATH)
    shell: Optional[str] = None
    temp_dir: Optional[str] = None
    output_encoding: str = "utf-8"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        try:
            codecs.lookup(self.output_encoding)
        except LookupError as exc:
            raise ConfigurationError(
                f"PWUPDATE_OUTPUT_ENCODING: unknown encoding {self.output_encoding!r}"
            ) from exc


def load_settings() -> Settings:
    """Return settings loaded from the environment."""
    return Settings(
        script_path=os.getenv("PWUPDATE_SCRIPT_PATH") or str(DEFAULT_SCRIPT_PATH),
        shell=os.getenv("PWUPDATE_SHELL") or None,
        temp_dir=os.getenv("PWUPDATE_TMP_DIR") or None,
        output_encoding=os.getenv("PWUPDATE_OUTPUT_ENCODING", "utf-8"),
        log_level=os.getenv("PWUPDATE_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("pwupdate")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
