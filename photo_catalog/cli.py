"""
Command-line interface for the photo catalog.
"""

import argparse
import json
import os
import sys
import traceback
from typing import List, Optional

from tqdm import tqdm

from .config import AppConfig, load_config
from .exceptions import PhotoCatalogError
from .import_source import FolderImportSource, FileListImportSource
from .logging_setup import setup_logging, get_logger
from .models import Photo
from .project import open_project
from .settings import SettingsStore

logger = get_logger(__name__)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Catalog photos, describe them with AI and search the descriptions"
    )

    parser.add_argument(
        "--config",
        default="config.json",
        help="Path to configuration JSON file (default: config.json, optional)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode regardless of config setting"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    open_parser = subparsers.add_parser("open", help="Open or create a project and list its photos")
    open_parser.add_argument("project", help="Project directory")

    import_parser = subparsers.add_parser("import", help="Import images and describe them")
    import_parser.add_argument("project", help="Project directory")
    import_parser.add_argument("files", nargs="*", help="Image files to import")
    import_parser.add_argument("--folder", help="Import every supported image in this folder")
    import_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Return after importing; queued photos are described on the next run"
    )

    process_parser = subparsers.add_parser("process", help="Describe every pending or failed photo")
    process_parser.add_argument("project", help="Project directory")

    status_parser = subparsers.add_parser("status", help="Show the status of every photo")
    status_parser.add_argument("project", help="Project directory")
    status_parser.add_argument("--json", action="store_true", help="Print JSON")

    search_parser = subparsers.add_parser("search", help="Search photo descriptions")
    search_parser.add_argument("project", help="Project directory")
    search_parser.add_argument("term", nargs="?", default="", help="Search text (blank lists all)")
    search_parser.add_argument("--json", action="store_true", help="Print JSON")

    edit_parser = subparsers.add_parser("edit", help="Replace a photo description")
    edit_parser.add_argument("project", help="Project directory")
    edit_parser.add_argument("photo_id", type=int, help="Photo id")
    edit_parser.add_argument("text", help="New description")

    restore_parser = subparsers.add_parser("restore", help="Restore the AI description of a photo")
    restore_parser.add_argument("project", help="Project directory")
    restore_parser.add_argument("photo_id", type=int, help="Photo id")

    settings_parser = subparsers.add_parser("settings", help="Show or set the API key and endpoint")
    settings_parser.add_argument("--api-key", help="API key to save")
    settings_parser.add_argument("--endpoint", help="Endpoint URL to save (blank for default)")

    return parser.parse_args(argv)


def load_app_config(args: argparse.Namespace) -> AppConfig:
    """
    Load the configuration file if present and apply CLI overrides.
    """
    if os.path.exists(args.config):
        config = load_config(args.config)
    else:
        config = AppConfig()
    if args.debug:
        config.debug_mode = True
        config.log_level = "DEBUG"
    return config


def _format_photo(photo: Photo) -> str:
    edited = " (edited)" if photo.is_edited else ""
    description = photo.description_ai or ""
    return f"[{photo.id}] {photo.status:<10} {photo.taken_at}  {photo.file_path}{edited}\n      {description}"


def _print_photos(photos: List[Photo], as_json: bool) -> None:
    if as_json:
        print(json.dumps([photo.to_dict() for photo in photos], indent=2, ensure_ascii=False))
        return
    for photo in photos:
        print(_format_photo(photo))
    print(f"{len(photos)} photos")


def _mask_key(api_key: str) -> str:
    if not api_key:
        return "(not set)"
    return api_key[:4] + "*" * max(len(api_key) - 8, 4) + api_key[-4:]


def _wait_with_progress(handle) -> None:
    """Block until the enrichment queue drains, with a progress bar on a terminal."""
    queue = handle.queue
    start = queue.stats.processed_photos
    total = len(queue.queued_ids()) + (1 if queue.is_processing else 0)

    with tqdm(total=total, desc="Describing photos", unit="photo", disable=None) as progress:
        while not handle.wait_until_idle(timeout=0.5):
            progress.update(queue.stats.processed_photos - start - progress.n)
        progress.update(queue.stats.processed_photos - start - progress.n)


def run_settings(args: argparse.Namespace, config: AppConfig) -> int:
    """Show or update the stored API configuration."""
    store = SettingsStore(config.settings_path, config.provider)
    if args.api_key is not None:
        try:
            store.set_api_config(args.api_key, args.endpoint)
        except ValueError as e:
            logger.error(f"Invalid settings: {str(e)}")
            return 1
    api_config = store.get_api_config()
    print(f"API key:  {_mask_key(api_config.api_key)}")
    print(f"Endpoint: {api_config.effective_endpoint}")
    return 0


def run_command(args: argparse.Namespace, config: AppConfig) -> int:
    """Run a project command."""
    if args.command == "settings":
        return run_settings(args, config)

    recover = args.command in ("open", "import", "process")
    handle, photos = open_project(args.project, config, recover=recover)
    try:
        if args.command == "open":
            _print_photos(photos, as_json=False)
            handle.close(wait=False)
            return 0

        if args.command == "import":
            paths = list(args.files)
            if args.folder:
                paths.extend(FolderImportSource(args.folder).get_paths())
            new_photos = handle.import_photos(FileListImportSource(paths).get_paths())
            print(f"Imported {len(new_photos)} new photos")
            if not args.no_wait:
                _wait_with_progress(handle)
            handle.close(wait=not args.no_wait)
            return 0

        if args.command == "process":
            _wait_with_progress(handle)
            stats = handle.get_stats()
            print(f"Completed: {stats['completed']}, failed: {stats['failed']}, pending: {stats['pending']}")
            return 0

        if args.command == "status":
            _print_photos(handle.list_status(), as_json=args.json)
            return 0

        if args.command == "search":
            hits = handle.search(args.term)
            if args.json:
                print(json.dumps([hit.to_dict() for hit in hits], indent=2, ensure_ascii=False))
            else:
                for hit in hits:
                    print(f"[{hit.photo.id}] {hit.photo.file_path}\n      {hit.highlighted}")
                print(f"{len(hits)} matches")
            return 0

        if args.command == "edit":
            photo = handle.edit(args.photo_id, args.text)
            print(_format_photo(photo))
            return 0

        if args.command == "restore":
            photo = handle.restore(args.photo_id)
            print(_format_photo(photo))
            return 0

        logger.error(f"Unknown command: {args.command}")
        return 1
    finally:
        handle.close()


def run_cli(argv: Optional[List[str]] = None) -> int:
    """
    Run the command-line interface.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    config = None
    try:
        args = parse_arguments(argv)
        config = load_app_config(args)
        setup_logging(config)

        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Command: {args.command}")

        return run_command(args, config)

    except PhotoCatalogError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"Command failed: {str(e)}")
        if config is not None and config.debug_mode:
            logger.error(f"Traceback: {traceback.format_exc()}")
        return 1
