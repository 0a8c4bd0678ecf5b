import argparse
from pathlib import Path

from ccstat.config import Config


def parse_args(argv: "list[str] | None" = None) -> "Config":
    parser = argparse.ArgumentParser(
        prog="ccstat",
        description="Live terminal status for AI coding assistant usage windows",
    )
    parser.add_argument(
        "--log.level",
        dest="log_level",
        default=None,
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info, debug when DEBUG_OUTPUT is set)",
    )
    parser.add_argument(
        "--refresh.interval",
        dest="refresh_interval_ms",
        type=int,
        default=None,
        help="Refresh interval in milliseconds (default: REFRESH_INTERVAL_MS)",
    )
    parser.add_argument(
        "--config.file",
        dest="config_path",
        type=Path,
        default=None,
        help="Preferences file (default: $XDG_CONFIG_HOME/ccstat.json)",
    )
    parser.add_argument(
        "--web.listen-address",
        dest="listen_address",
        default="",
        help="Expose Prometheus metrics on this address, e.g. 127.0.0.1:9186 "
        "(default: disabled)",
    )

    args = parser.parse_args(argv)
    return Config(
        log_level=args.log_level,
        listen_address=args.listen_address,
        refresh_interval_ms=args.refresh_interval_ms,
        config_path=args.config_path,
    )
