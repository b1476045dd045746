from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger("ircdeck.config")

APP_NAME = "IRCDeck"
# Paths are module-level so tests can monkeypatch them easily.
DATA_DIR: Path = Path.home() / ".ircdeck_local"
CONFIG_PATH: Path = DATA_DIR / "config.json"


def _default_config() -> Dict[str, Any]:
    return {
        "client": {
            "discovery_delay": 2.0,
            "directory_timeout": 10.0,
            "quit_message": APP_NAME,
            "realname": APP_NAME,
            "verify_tls": False,
        },
        # serverId -> {name, host, port, nickname, password, tls, lastActiveChannel}
        "servers": {},
        "logging": {"enabled": True, "dir": str(DATA_DIR / "logs")},
    }


def ensure_config() -> Dict[str, Any]:
    """Ensure the user config exists and return it as a dict.

    A corrupted file is replaced with defaults.
    """
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    if not CONFIG_PATH.exists():
        cfg = _default_config()
        _persist_cfg(cfg)
        return cfg
    try:
        with CONFIG_PATH.open("r", encoding="utf-8") as f:
            cfg = json.load(f)
        if not isinstance(cfg, dict):
            raise ValueError("config root is not an object")
        return cfg
    except (OSError, ValueError) as e:
        logger.warning("config at %s unreadable (%s); restoring defaults", CONFIG_PATH, e)
        cfg = _default_config()
        _persist_cfg(cfg)
        return cfg


def _persist_cfg(cfg: Dict[str, Any]) -> None:
    """Write the config dict to CONFIG_PATH (pretty JSON)."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    with CONFIG_PATH.open("w", encoding="utf-8") as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)


@dataclass(frozen=True)
class Settings:
    discovery_delay: float = 2.0
    directory_timeout: float = 10.0
    quit_message: str = APP_NAME
    realname: str = APP_NAME
    verify_tls: bool = False
    log_enabled: bool = True
    log_dir: str | None = None

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> Settings:
        client = cfg.get("client") or {}
        logs = cfg.get("logging") or {}
        defaults = cls()
        return cls(
            discovery_delay=float(client.get("discovery_delay", defaults.discovery_delay)),
            directory_timeout=float(client.get("directory_timeout", defaults.directory_timeout)),
            quit_message=str(client.get("quit_message") or defaults.quit_message),
            realname=str(client.get("realname") or defaults.realname),
            verify_tls=bool(client.get("verify_tls", defaults.verify_tls)),
            log_enabled=bool(logs.get("enabled", defaults.log_enabled)),
            log_dir=logs.get("dir") or None,
        )


class ServerStore:
    """Load/save the durable server list under the config file's "servers" key."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or CONFIG_PATH

    def _read(self) -> Dict[str, Any]:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("could not read %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> Dict[str, Dict[str, Any]]:
        servers = self._read().get("servers")
        if not isinstance(servers, dict):
            return {}
        return {sid: dict(v) for sid, v in servers.items() if isinstance(v, dict)}

    def save(self, servers: Dict[str, Dict[str, Any]]) -> None:
        cfg = self._read() or _default_config()
        cfg["servers"] = copy.deepcopy(servers)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(cfg, f, ensure_ascii=False, indent=2)
