"""Zhuzh - entry point and logging setup."""

import argparse
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Sequence

from .config import AppConfig


def setup_logging(config: AppConfig) -> logging.Logger:
    """Send all zhuzh logging to a rotating file under the data path.

    The file is .zhuzh/logs/zhuzh.log next to config.yaml unless
    ``logs.directory`` points elsewhere. The directory is owner-only (700)
    since log lines carry people's names and hours. ZHUZH_DEBUG forces
    DEBUG regardless of ``logs.level``.
    """
    log_dir = config.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)
    log_dir.chmod(0o700)

    if os.environ.get("ZHUZH_DEBUG"):
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, config.logs.level)

    handler = RotatingFileHandler(
        log_dir / "zhuzh.log",
        maxBytes=config.logs.max_bytes,
        backupCount=config.logs.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    return logging.getLogger(__name__)


def config_for_argv(argv: Optional[Sequence[str]] = None) -> AppConfig:
    """Load the config for the --data directory named on the command line.

    Only --data/-d is read here; everything else is left for the CLI parser.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument("--data", "-d", dest="data_path", default=".")
    args, _ = parser.parse_known_args(argv)
    return AppConfig.load(Path(args.data_path).resolve())


def main() -> None:
    """Entry point for the zhuzh console script."""
    from .cli import run_cli

    logger = setup_logging(config_for_argv(sys.argv[1:]))
    logger.debug(f"zhuzh invoked with {sys.argv[1:]}")
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
