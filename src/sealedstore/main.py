"""Main entry point for SealedStore."""

from __future__ import annotations

import argparse
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sealedstore.config import Settings
    from sealedstore.storage.factory import KeyResolution

logger = logging.getLogger(__name__)


def setup_logging(
    level: str = "INFO",
    debug: bool = False,
    log_to_file: bool = False,
    log_file_path: Path | None = None,
    log_file_max_bytes: int = 10 * 1024 * 1024,
    log_file_backup_count: int = 5,
) -> None:
    """Configure logging with console and optional file output.

    Both handlers sanitize their output, so connection passwords and key
    material never reach a log sink.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR)
        debug: If True, overrides level to DEBUG
        log_to_file: Enable file logging in addition to console
        log_file_path: Path to log file (required when log_to_file=True)
        log_file_max_bytes: Maximum size per log file before rotation
        log_file_backup_count: Number of rotated backup files to keep
    """
    effective_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(effective_level)

    # Clear any existing handlers to avoid duplicates
    root_logger.handlers.clear()

    from sealedstore.utils.logging import LogSanitizer, SanitizingFormatter

    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = SanitizingFormatter(log_format, datefmt=date_format)

    # Console on stderr; stdout carries blob contents for `get`
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(effective_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(LogSanitizer())
    root_logger.addHandler(console_handler)

    if log_to_file and log_file_path:
        try:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = RotatingFileHandler(
                log_file_path,
                maxBytes=log_file_max_bytes,
                backupCount=log_file_backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(effective_level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(LogSanitizer())
            root_logger.addHandler(file_handler)

            logging.info(f"File logging enabled: {log_file_path}")
        except OSError as e:
            # Graceful degradation - continue with console-only logging
            logging.warning(f"Failed to initialize file logging: {e}. Using console-only logging.")


def log_startup_summary(settings: Settings, resolution: KeyResolution) -> None:
    """Log the storage configuration with secrets redacted."""
    from sealedstore.config import StorageType
    from sealedstore.utils.logging import redact_home, redact_url

    logger.info("=== Startup Configuration ===")
    logger.info(f"Storage type: {settings.storage_type.value}")

    if resolution.source == "disabled":
        logger.info("Encryption: DISABLED")
    elif resolution.source == "settings":
        logger.info("Encryption key: PROVIDED (configuration)")
    else:
        if resolution.path is not None:
            logger.info(f"Encryption key path: {redact_home(resolution.path)}")
        logger.info(f"Encryption key: {'NEW (generated)' if resolution.generated else 'EXISTING (loaded)'}")
    if resolution.key is not None:
        logger.info(f"Encryption key (redacted): {resolution.key.preview()}")

    if settings.storage_type is StorageType.FILE:
        logger.info(f"Data path: {redact_home(settings.data_dir)}")
        logger.info(f"Data file: {settings.data_file}")
    elif settings.storage_type is StorageType.SQL:
        logger.info(f"SQL DSN: {redact_url(settings.sql_dsn)}")
        logger.info(f"SQL table: {settings.sql_table}")
    elif settings.storage_type is StorageType.MONGODB:
        logger.info(f"MongoDB URI: {redact_url(settings.mongo_uri)}")
        logger.info(f"MongoDB database: {settings.mongo_database}")
        logger.info(f"MongoDB collection: {settings.mongo_collection}")
    elif settings.storage_type is StorageType.S3:
        logger.info(f"S3 bucket: {settings.s3_bucket}")
        logger.info(f"S3 region: {settings.s3_region}")

    logger.info("=============================")


def _build_parser(defaults: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sealedstore",
        description="SealedStore - persist blobs with optional encryption at rest",
    )
    parser.add_argument(
        "--storage",
        default=None,
        help=f"Storage backend (default: {defaults.storage_type.value}, env: SEALEDSTORE_STORAGE_TYPE)",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help=f"File backend directory (default: {defaults.data_dir}, env: SEALEDSTORE_DATA_DIR)",
    )
    parser.add_argument(
        "--key-path",
        default=None,
        help="Encryption key file (env: SEALEDSTORE_KEY_PATH)",
    )
    parser.add_argument(
        "--no-encryption",
        action="store_true",
        help="Store plaintext (env: SEALEDSTORE_ENCRYPTION_ENABLED=false)",
    )
    parser.add_argument(
        "--log-level",
        default=defaults.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {defaults.log_level}, env: SEALEDSTORE_LOG_LEVEL)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=defaults.debug,
        help="Enable debug logging (env: SEALEDSTORE_DEBUG)",
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("init-key", help="Load or generate the encryption key")
    commands.add_parser("info", help="Show the storage configuration (secrets redacted)")

    get_cmd = commands.add_parser("get", help="Write the blob stored under KEY to stdout")
    get_cmd.add_argument("key", nargs="?", default=None, help="Resource key (default: data file)")

    put_cmd = commands.add_parser("put", help="Store FILE (or stdin) under KEY")
    put_cmd.add_argument("key", help="Resource key")
    put_cmd.add_argument("file", nargs="?", default="-", help="Input file (default: stdin)")

    delete_cmd = commands.add_parser("delete", help="Delete the blob stored under KEY")
    delete_cmd.add_argument("key", help="Resource key")

    exists_cmd = commands.add_parser("exists", help="Exit 0 if KEY exists, 1 otherwise")
    exists_cmd.add_argument("key", help="Resource key")

    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    from sealedstore.config import Settings

    overrides: dict[str, object] = {
        "log_level": args.log_level,
        "debug": args.debug,
    }
    if args.storage is not None:
        overrides["storage_type"] = args.storage
    if args.data_dir is not None:
        overrides["data_dir"] = Path(args.data_dir).expanduser()
    if args.key_path is not None:
        overrides["key_path"] = Path(args.key_path).expanduser()
    if args.no_encryption:
        overrides["encryption_enabled"] = False
    return Settings(**overrides)  # type: ignore[arg-type]


def run(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit status."""
    from pydantic import ValidationError

    from sealedstore.config import get_settings
    from sealedstore.storage.errors import StorageError
    from sealedstore.storage.factory import create_storage_manager, resolve_encryption_key

    try:
        defaults = get_settings()
    except ValidationError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    parser = _build_parser(defaults)
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_args(args)
    except ValidationError as e:
        parser.error(str(e))

    setup_logging(
        level=settings.log_level,
        debug=settings.debug,
        log_to_file=settings.log_to_file,
        log_file_path=settings.log_file_path,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    try:
        resolution = resolve_encryption_key(settings)

        if args.command == "init-key":
            log_startup_summary(settings, resolution)
            if resolution.key is not None:
                print(resolution.key.preview())
            return 0

        if args.command == "info":
            log_startup_summary(settings, resolution)
            return 0

        with create_storage_manager(settings, resolution.key) as manager:
            if args.command == "get":
                sys.stdout.buffer.write(manager.load(args.key or settings.data_file))
                sys.stdout.buffer.flush()
            elif args.command == "put":
                if args.file == "-":
                    data = sys.stdin.buffer.read()
                else:
                    data = Path(args.file).read_bytes()
                manager.save(args.key, data)
                logger.info(f"Stored {len(data)} bytes under {args.key}")
            elif args.command == "delete":
                manager.delete(args.key)
                logger.info(f"Deleted {args.key}")
            elif args.command == "exists":
                return 0 if manager.exists(args.key) else 1
    except StorageError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Cannot read input: {e}")
        return 1

    return 0


def main() -> None:
    """Run SealedStore command line interface."""
    sys.exit(run())


if __name__ == "__main__":
    main()
