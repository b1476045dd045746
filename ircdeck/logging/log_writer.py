from __future__ import annotations

import os
import time
from pathlib import Path

from ..core.models import Message, MessageType

STATUS_LOG = "status"


def format_line(message: Message) -> str:
    if message.type is MessageType.USER:
        return f"<{message.nick}> {message.text}"
    return f"* {message.text}"


def _safe(name: str | None, fallback: str) -> str:
    return (name or fallback).strip().replace(os.sep, "_") or fallback


class LogWriter:
    """Per-channel transcript files: <base>/<server>/<channel>.log

    Server-level messages (no channel) go to status.log.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base = Path(base_dir or Path.cwd() / "logs")
        self.base.mkdir(parents=True, exist_ok=True)

    def path_for(self, network: str, channel: str | None) -> Path:
        folder = self.base / _safe(network, "irc")
        folder.mkdir(parents=True, exist_ok=True)
        return folder / f"{_safe(channel, STATUS_LOG)}.log"

    def append(self, network: str, channel: str | None, line: str, ts: float | None = None) -> None:
        stamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(ts or time.time()))
        with self.path_for(network, channel).open("a", encoding="utf-8", errors="ignore") as f:
            f.write(f"[{stamp}] {line}\n")

    def append_message(self, network: str, channel: str | None, message: Message) -> None:
        self.append(network, channel, format_line(message), message.timestamp)
