import asyncio
import signal

import structlog
from prometheus_client import start_http_server

from ccstat.cli import parse_args
from ccstat.config import load_preferences
from ccstat.high_water_mark import (
    MonitorState,
    high_water_mark_path,
    load_high_water_mark,
)
from ccstat.logging import setup_logging
from ccstat.metrics import MetricsUpdater
from ccstat.monitor import Monitor

logger = structlog.get_logger()


def _parse_listen_address(addr: "str") -> "tuple[str, int]":
    """
    parses listen address in format ':9186' or '127.0.0.1:9186'.
    A bare port binds to loopback only.
    """
    if addr.startswith(":"):
        return ("127.0.0.1", int(addr[1:]))

    host, port = addr.rsplit(":", 1)
    return (host, int(port))


def main() -> "None":
    config = parse_args()
    setup_logging(config.log_level or "info")

    try:
        preferences = load_preferences(config.config_path)
        hwm_path = high_water_mark_path()
    except RuntimeError as exc:
        # Path.home() raises when no home directory can be determined
        raise SystemExit(f"ccstat: cannot locate the home directory: {exc}")

    if config.log_level is None and preferences.debug_output:
        setup_logging("debug")

    state = MonitorState(
        preferences=preferences,
        high_water_mark=load_high_water_mark(hwm_path),
    )

    metrics_updater = MetricsUpdater()
    if config.metrics_enabled:
        host, port = _parse_listen_address(config.listen_address)
        start_http_server(port, addr=host)
        logger.info("metrics_server_started", host=host, port=port)

    monitor = Monitor(
        hwm_path,
        metrics_updater,
        refresh_interval_ms=config.refresh_interval_ms
        or preferences.refresh_interval_ms,
    )

    async def _run() -> "None":
        loop = asyncio.get_running_loop()
        # for SIGINT and SIGTERM, let the current cycle
        # finish and leave the loop
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, monitor.stop)

        await monitor.run(state)
        logger.debug("shutdown_complete")

    asyncio.run(_run())


if __name__ == "__main__":
    main()
