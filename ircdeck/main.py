from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from .core import config
from .core.config import APP_NAME, ServerStore, Settings, ensure_config

logger = logging.getLogger("ircdeck")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ircdeck", description=f"{APP_NAME} IRC client")
    parser.add_argument("--debug", action="store_true", help="verbose logging")
    parser.add_argument("--config", help="path to config.json (default: ~/.ircdeck_local)")
    parser.add_argument("--host", help="connect to this server on start")
    parser.add_argument("--port", type=int, default=6697)
    parser.add_argument("--nick", default="IRCDeckUser")
    parser.add_argument("--no-tls", action="store_true", help="plain-text connection")
    return parser.parse_args(argv)


def _log_servers(rows: list[dict]) -> None:
    logger.info("servers: %s", ", ".join(f"{r['name']}={r['status']}" for r in rows))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.config:
        config.CONFIG_PATH = Path(args.config).expanduser()
        config.DATA_DIR = config.CONFIG_PATH.parent
    cfg = ensure_config()
    settings = Settings.from_config(cfg)

    # Import Qt modules only when running the app
    from PyQt6.QtCore import QCoreApplication
    from qasync import QEventLoop

    from .irc.manager import IRCManager
    from .logging.log_writer import LogWriter
    from .ui_pyqt6.bridge import BridgeQt

    app = QCoreApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)

    log_writer = None
    if settings.log_enabled:
        log_writer = LogWriter(settings.log_dir or config.DATA_DIR / "logs")
    manager = IRCManager(
        settings=settings,
        store=ServerStore(config.CONFIG_PATH),
        loop=loop,
        log_writer=log_writer,
    )
    bridge = BridgeQt(manager)
    bridge.statusChanged.connect(lambda s: logger.info("%s", s))
    bridge.serversChanged.connect(_log_servers)

    async def _stop() -> None:
        await manager.shutdown()
        loop.stop()

    try:
        loop.add_signal_handler(signal.SIGINT, lambda: asyncio.ensure_future(_stop()))
    except (NotImplementedError, RuntimeError):
        logger.debug("no signal handler support on this loop; Ctrl+C will not shut down cleanly")

    with loop:
        manager.restore()
        if args.host:
            bridge.connectHost(args.host, args.host, args.port, args.nick, "", not args.no_tls)
        loop.run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
