"""CLI entrypoint for the launch scheduler web host."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace

from kiln_launch.domain.errors import StoreUnavailable
from kiln_launch.web.config import load_web_config
from kiln_launch.web.host import WebHost


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the kiln launch scheduler HTTP service")
    parser.add_argument("--env-file", default=".env", help="Path to env file")
    parser.add_argument("--host", help="HTTP bind host")
    parser.add_argument("--port", type=int, help="HTTP bind port")
    parser.add_argument(
        "--data-dir",
        help="Directory for the persisted unit JSON file",
    )
    parser.add_argument(
        "--memory",
        action="store_true",
        help="Keep units in memory only",
    )
    parser.add_argument("--scenario", help="Seed scenario key used when the store is empty")
    parser.add_argument("--log-level", help="Logging level (DEBUG, INFO, WARNING, ...)")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    config = load_web_config(args.env_file)

    if args.host:
        config = replace(config, host=args.host)
    if args.port is not None:
        config = replace(config, port=args.port)
    if args.data_dir:
        config = replace(config, data_dir=args.data_dir)
    if args.memory:
        config = replace(config, data_dir="")
    if args.scenario:
        config = replace(config, seed_scenario=args.scenario)
    if args.log_level:
        config = replace(config, log_level=args.log_level.upper())

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        host = WebHost(config)
    except (ValueError, StoreUnavailable) as exc:
        raise SystemExit(str(exc)) from exc
    try:
        host.start()
    except KeyboardInterrupt:
        pass
    finally:
        host.stop()


if __name__ == "__main__":
    main()
