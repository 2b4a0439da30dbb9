#!/usr/bin/env python3
"""
storage-backup: Mirror a Supabase Storage bucket into S3 on a cron-like schedule.

Main entry point for the backup application.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from storage_backup.backup_manager import BackupManager
from storage_backup.config import BackupSettings, load_config
from storage_backup.notifier import SlackNotifier
from storage_backup.s3_destination import S3Destination
from storage_backup.scheduler import BackupScheduler
from storage_backup.supabase_source import SupabaseSource
from storage_backup.transfer import TransferStrategist
from storage_backup.tree_enumerator import TreeEnumerator


def setup_logging(config: BackupSettings) -> logging.Logger:
    """Set up logging to the configured file and to the console."""
    log_file_path = Path(config.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter("%(asctime)s %(levelname)-8s %(message)s")

    root = logging.getLogger()
    root.setLevel(config.log_level)
    for handler in list(root.handlers):  # avoid duplicate handlers
        root.removeHandler(handler)

    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    # Client libraries are chatty at DEBUG
    for noisy in ("botocore", "boto3", "s3transfer", "urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logging.getLogger("storage_backup")


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Back up a Supabase Storage bucket to S3",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                        # Run now, then on the BACKUP_CRON schedule
  python main.py --once                 # Run a single backup and exit
  python main.py --once -c config.yaml  # Override environment settings from YAML
        """,
    )

    parser.add_argument(
        "--once",
        "-o",
        action="store_true",
        help="Run a single backup and exit",
    )

    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Optional YAML file whose keys override environment settings",
    )

    return parser.parse_args(argv)


def build_scheduler(config: BackupSettings) -> BackupScheduler:
    """Wire the storage clients and the backup engine together."""
    source = SupabaseSource.from_config(config)
    destination = S3Destination.from_config(config)

    strategist = TransferStrategist(
        source,
        destination,
        staging_dir=config.temp_dir,
        key_prefix=config.s3_prefix,
    )
    manager = BackupManager(strategist, config.temp_dir, config.batch_size)

    return BackupScheduler(
        enumerator=TreeEnumerator(source, root=config.supabase_audio_path),
        manager=manager,
        schedule=config.backup_cron,
        notifier=SlackNotifier(config.slack_webhook_url),
        file_extensions=config.allowed_extensions,
    )


def log_configuration(config: BackupSettings, logger: logging.Logger) -> None:
    logger.info("Configuration:")
    logger.info(f"  Supabase URL: {config.supabase_url}")
    logger.info(f"  Supabase Bucket: {config.supabase_bucket_name}")
    logger.info(f"  Supabase Path: {config.supabase_audio_path or '/'}")
    logger.info(f"  S3 Bucket: {config.s3_bucket_name}")
    logger.info(f"  S3 Region: {config.s3_region}")
    logger.info(f"  S3 Prefix: {config.s3_prefix or 'none'}")
    logger.info(f"  Temp Directory: {config.temp_dir}")
    logger.info(f"  Batch Size: {config.batch_size}")
    logger.info(f"  Cron Schedule: {config.backup_cron}")
    logger.info(f"  File Extensions: {', '.join(config.allowed_extensions) or 'all'}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main application entry point."""
    args = parse_arguments(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 1

    logger = setup_logging(config)
    logger.info("Supabase Storage Backup Tool")
    log_configuration(config, logger)

    try:
        scheduler = build_scheduler(config)

        if args.once:
            logger.info("Running in one-time backup mode")
            scheduler.run_backup(raise_errors=True)
            logger.info("One-time backup completed successfully")
            return 0

        scheduler.install_signal_handlers()
        scheduler.start()
        return 0

    except KeyboardInterrupt:
        logger.warning("Backup process interrupted by user")
        return 130

    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
