# medtracker/adapters/log_sink.py
from __future__ import annotations

import itertools
import logging
from typing import Any

from medtracker.core.i18n import fmt
from medtracker.core.logging_utils import kv


class LogNotificationSink:
    """Writes notifications to the log; used when no Telegram token is configured."""

    def __init__(self) -> None:
        self.log = logging.getLogger("medtracker.sink")
        self._handles = itertools.count(1)

    def show(self, title: str, options: dict[str, Any]) -> int:
        handle = next(self._handles)
        line = fmt("log_line", title=title, body=" ".join(str(options.get("body", "")).split()))
        self.log.info(
            "sink.log.show "
            + kv(handle=handle, tag=options.get("tag"), silent=bool(options.get("silent")))
            + " "
            + line
        )
        return handle

    def send_text(self, text: str) -> None:
        self.log.info("sink.log.text " + kv(text=text))

    def close(self, handle: int) -> None:
        self.log.debug("sink.log.close " + kv(handle=handle))


__all__ = ["LogNotificationSink"]
