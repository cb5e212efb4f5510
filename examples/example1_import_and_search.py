#!/usr/bin/env python3
"""
Example 1: Import a Folder and Search the Descriptions

This example opens (or creates) a project, imports every image in a folder,
waits for the descriptions to be generated and then runs a search.
"""

import os
import sys
import argparse
from pathlib import Path

# Add the parent directory to sys.path to import the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from photo_catalog.config import AppConfig, load_config
from photo_catalog.import_source import FolderImportSource
from photo_catalog.logging_setup import setup_logging
from photo_catalog.project import open_project


def import_and_search_example():
    """Import and search example."""
    parser = argparse.ArgumentParser(description="Import and search example for the photo catalog")
    parser.add_argument("project", help="Project directory")
    parser.add_argument("folder", help="Folder of images to import")
    parser.add_argument("term", help="Text to search for once descriptions are ready")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if not os.path.isdir(args.folder):
        print(f"Error: Folder not found: {args.folder}")
        return 1

    config_path = os.path.join(Path(__file__).parent.parent, "config.json")
    config = load_config(config_path) if os.path.exists(config_path) else AppConfig()

    if args.debug:
        config.debug_mode = True
        config.log_level = "DEBUG"

    setup_logging(config)

    handle, photos = open_project(args.project, config)
    print(f"Project has {len(photos)} photos")

    with handle:
        new_photos = handle.import_from(FolderImportSource(args.folder))
        print(f"Imported {len(new_photos)} new photos, waiting for descriptions...")
        handle.wait_until_idle()

        stats = handle.get_stats()
        print(f"Completed: {stats['completed']}, failed: {stats['failed']}")

        hits = handle.search(args.term)
        print(f"\n{len(hits)} photos match '{args.term}':")
        for hit in hits:
            print(f"  {hit.photo.file_path}")
            print(f"    {hit.highlighted}")

    return 0


if __name__ == "__main__":
    sys.exit(import_and_search_example())
