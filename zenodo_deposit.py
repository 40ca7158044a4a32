#!/usr/bin/env python3
"""
Zenodo deposits from local MyST content.

Usage:
    zenodo-deposit deposit [--file FILE] [--type TYPE] [--sandbox] [--publish]

Example:
    export ZENODO_TOKEN=...
    zenodo-deposit deposit --sandbox --type presentation
    zenodo-deposit deposit --file paper/index.md --dry-run
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from deposit_errors import InputError
from deposit_flows import deposit_articles, preview_articles
from deposit_tasks import description_preview, parse_upload_type
from models.zenodo import UploadType
from myst_project import collect_articles, find_project_configs
from zenodo_uploader import ZenodoClient, get_credentials_from_env

__version__ = "0.1.0"

DEFAULT_UPLOAD_TYPE = UploadType.PRESENTATION.value
LOG_FILE = "zenodo_deposit.log"

logger = logging.getLogger("zenodo_deposit")


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.FileHandler(LOG_FILE),
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zenodo-deposit",
        description="Create Zenodo deposits from local MyST content",
    )
    parser.add_argument(
        "-v", "--version", action="version",
        version=f"v{__version__}",
        help="Print the current version of zenodo-deposit",
    )
    parser.add_argument(
        "-d", "--debug", action="store_true",
        help="Log out any errors to the console",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    deposit = subparsers.add_parser(
        "deposit", help="Create or update Zenodo deposits for local articles",
    )
    deposit.add_argument(
        "--file", type=str, default=None,
        help="Source document to deposit (default: every project below the current directory)",
    )
    deposit.add_argument(
        "--type", type=str, default=None,
        choices=[upload_type.value for upload_type in UploadType],
        help=f"Deposit type (prompted when omitted, default: {DEFAULT_UPLOAD_TYPE})",
    )
    deposit.add_argument(
        "--sandbox", action="store_true",
        help="Use the Zenodo sandbox for testing purposes",
    )
    deposit.add_argument(
        "--publish", action="store_true",
        help="Publish each deposit once its files are uploaded",
    )
    deposit.add_argument(
        "--dry-run", action="store_true",
        help="Print the deposit metadata without contacting Zenodo",
    )
    deposit.add_argument(
        "--results", type=str, default=None,
        help="CSV file to append deposit results to",
    )
    deposit.add_argument(
        "-y", "--yes", action="store_true",
        help="Do not ask for confirmation before depositing",
    )
    return parser


def prompt_upload_type() -> str:
    answer = input(f"Deposit type [{DEFAULT_UPLOAD_TYPE}]: ").strip()
    return answer or DEFAULT_UPLOAD_TYPE


def prompt_source_file() -> Optional[Path]:
    answer = input("Source file to deposit: ").strip()
    return Path(answer) if answer else None


def run_deposit(args: argparse.Namespace) -> int:
    """Run the ``deposit`` command and return the exit code."""
    credentials = get_credentials_from_env(sandbox=args.sandbox)
    logger.info("Zenodo credentials loaded from environment")

    upload_type = parse_upload_type(args.type or prompt_upload_type())

    root = Path.cwd()
    source_file = Path(args.file) if args.file else None
    if source_file is None and not find_project_configs(root):
        source_file = prompt_source_file()
        if source_file is None:
            raise InputError(f"No source documents found under {root}")

    articles = collect_articles(root, source_file)

    logger.info("=" * 70)
    logger.info("ZENODO DEPOSIT")
    logger.info("=" * 70)
    logger.info("Environment: %s", "sandbox" if args.sandbox else "production")
    logger.info("Deposit type: %s", upload_type.value)
    logger.info("Articles: %d", len(articles))
    for article in articles:
        logger.info("  • %s", article.source_file)
    logger.info("Publish: %s", args.publish)
    logger.info("=" * 70)

    if args.dry_run:
        for article, metadata in preview_articles(articles, upload_type):
            print(json.dumps({"metadata": metadata.to_dict()}, indent=2, ensure_ascii=False))
            logger.info(
                "Description of %s:\n%s",
                article.source_file, description_preview(metadata.description),
            )
        logger.info("Dry run complete, nothing was deposited")
        return 0

    if not args.yes:
        print(f"\n⚠️  You are about to deposit {len(articles)} article(s) on Zenodo.")
        if not args.sandbox:
            print("   This will create REAL records on zenodo.org.")
        response = input("\nProceed? (yes/no): ")
        if response.strip().lower() != "yes":
            logger.info("Deposit cancelled by user")
            return 0

    client = ZenodoClient.from_credentials(credentials)
    results = deposit_articles(
        client,
        articles,
        upload_type,
        publish=args.publish,
        results_file=args.results,
    )

    logger.info("=" * 70)
    logger.info("DEPOSIT SUMMARY")
    logger.info("=" * 70)
    for result in results:
        logger.info("%s -> %s (%s file(s))", result.source_file, result.link or result.id, result.files)
    logger.info("=" * 70)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.debug)

    try:
        if args.command == "deposit":
            return run_deposit(args)
        parser.error(f"Unknown command: {args.command}")
    except KeyboardInterrupt:
        logger.warning("Deposit interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.debug)
        return 1
    return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
