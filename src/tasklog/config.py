"""Configuration for the task display, read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

log = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.016


@dataclass
class Config:
    """Renderer configuration.

    ``interactive`` of ``None`` means "probe the output stream".
    """

    interval: float = DEFAULT_INTERVAL
    interactive: bool | None = None
    write_log_path: str = ""
    color: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Build a config from ``TASKLOG_*`` variables and ``NO_COLOR``."""
        env = os.environ if environ is None else environ
        config = cls()

        raw_interval = env.get("TASKLOG_INTERVAL_MS")
        if raw_interval:
            try:
                interval = float(raw_interval) / 1000.0
            except ValueError:
                interval = -1.0
            if interval >= 0:
                config.interval = interval
            else:
                log.warning(
                    "ignoring TASKLOG_INTERVAL_MS=%r, using %s ms",
                    raw_interval,
                    DEFAULT_INTERVAL * 1000,
                )

        raw_interactive = env.get("TASKLOG_INTERACTIVE")
        if raw_interactive in ("1", "true", "yes"):
            config.interactive = True
        elif raw_interactive in ("0", "false", "no"):
            config.interactive = False
        elif raw_interactive:
            log.warning("ignoring TASKLOG_INTERACTIVE=%r", raw_interactive)

        config.write_log_path = env.get("TASKLOG_WRITE_LOG", "")
        config.color = "NO_COLOR" not in env
        return config
