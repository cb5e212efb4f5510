#!/usr/bin/env python3
"""
Example 2: Edit a Description and Restore It

Shows how a user edit replaces the AI description, how the original is
kept, and how restoring puts it back.
"""

import sys
import argparse
from pathlib import Path

# Add the parent directory to sys.path to import the package
sys.path.insert(0, str(Path(__file__).parent.parent))

from photo_catalog.config import AppConfig
from photo_catalog.exceptions import PhotoCatalogError
from photo_catalog.logging_setup import setup_logging
from photo_catalog.project import open_project


def edit_restore_example():
    """Edit and restore example."""
    parser = argparse.ArgumentParser(description="Edit and restore example for the photo catalog")
    parser.add_argument("project", help="Project directory")
    parser.add_argument("photo_id", type=int, help="Photo to edit")
    parser.add_argument("text", help="Replacement description")
    args = parser.parse_args()

    config = AppConfig()
    setup_logging(config)

    # Nothing is described here, so don't start the queue
    handle, _ = open_project(args.project, config, recover=False)

    with handle:
        try:
            edited = handle.edit(args.photo_id, args.text)
            print(f"Edited:   {edited.description_ai}")
            print(f"Original: {edited.description_original}")
            print(f"Matches for '{args.text}': {len(handle.search(args.text))}")

            restored = handle.restore(args.photo_id)
            print(f"Restored: {restored.description_ai}")
        except PhotoCatalogError as e:
            print(f"Error: {e}")
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(edit_restore_example())
