"""Debug dumps of failed exchanges.

When debug mode is on, every request that ends in an upstream error or
an unparsable answer is written as a plain-text file named after the
time the request arrived (``<log_dir>/2026-10-19-14:37:05.txt``).  The
file holds ``[Request]``, ``[Response]`` and ``[ParseFailed]`` or
``[JsonFailed]`` sections.  Recording never changes the response sent to
the client; write errors are logged and dropped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d-%H:%M:%S"


@dataclass
class ExchangeLog:
    """Accumulates the text of one exchange.

    Attributes:
        started_at: Local time the request arrived; names the file.
        sections: Rendered sections in the order they were added.
    """

    started_at: datetime = field(default_factory=datetime.now)
    sections: list[str] = field(default_factory=list)

    def request(self, url: str, method: str, body: Any) -> None:
        self.sections.append(
            f"[Request]\nUrl: {url}\nMethod: {method}\n"
            f"Body: {json.dumps(body, ensure_ascii=False)}\n\n"
        )

    def response(self, status: int, body: str) -> None:
        self.sections.append(f"[Response]\nStatus: {status}\nBody: {body}\n\n")

    def transport_error(self, exc: Exception) -> None:
        self.sections.append(f"[Response]\nError: {type(exc).__name__}: {exc}\n\n")

    def parse_failed(self, message: str) -> None:
        self.sections.append(f"[ParseFailed]\n{message}\n\n")

    def json_failed(self, raw: str, error: str) -> None:
        self.sections.append(f"[JsonFailed]\nRaw:\n{raw}\nError:\n{error}\n")

    def render(self) -> str:
        return "".join(self.sections)


class DebugRecorder:
    """Writes exchange logs to disk when enabled.

    Args:
        log_dir: Directory for dump files, created on first write.
        enabled: When False, ``save()`` does nothing.
    """

    def __init__(self, log_dir: Path, *, enabled: bool = False) -> None:
        self.log_dir = log_dir
        self.enabled = enabled

    def save(self, log: ExchangeLog) -> Path | None:
        """Write *log* to ``<log_dir>/<timestamp>.txt``.

        Args:
            log: The exchange to record.

        Returns:
            Path of the written file, or ``None`` if disabled or the
            write failed.
        """
        if not self.enabled:
            return None
        filepath = self.log_dir / f"{log.started_at.strftime(TIMESTAMP_FORMAT)}.txt"
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            filepath.write_text(log.render(), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write debug log %s: %s", filepath, exc)
            return None
        logger.info("Debug log written to %s", filepath)
        return filepath
