"""
Opening a project and the operations available on an open catalog.
"""

import os
import sqlite3
from typing import List, Tuple, Dict, Any, Optional, Iterable

from .catalog_db import CatalogDatabase
from .config import AppConfig
from .description_provider import DescriptionProvider
from .edit_workflow import edit_description, restore_description
from .enrichment_queue import EnrichmentQueue
from .exceptions import ProjectOpenError, ProjectClosedError, PhotoImportError
from .import_source import ImportSource
from .logging_setup import get_logger
from .metadata_extractor import MetadataExtractor
from .models import Photo, SearchHit, is_supported_image
from .search_index import SearchIndex
from .settings import SettingsStore

logger = get_logger(__name__)


class CatalogHandle:
    """
    An open project. All catalog, search and queue operations go through it;
    switching projects means closing one handle and opening another.
    """

    def __init__(self, project_path: str, catalog: CatalogDatabase, queue: EnrichmentQueue,
                 extractor: MetadataExtractor):
        self.project_path = project_path
        self.catalog = catalog
        self.queue = queue
        self.extractor = extractor
        self.search_index = SearchIndex(catalog)
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _check_open(self) -> None:
        if self._closed:
            raise ProjectClosedError(f"Project {self.project_path} is closed")

    def import_photos(self, paths: Iterable[str]) -> List[Photo]:
        """
        Add image files to the catalog and queue them for description.

        Files already in the catalog are skipped. A file that can't be
        imported is logged and skipped; the rest of the batch continues.

        Args:
            paths: Paths of image files

        Returns:
            The newly created photos

        Raises:
            ProjectClosedError: If the project has been closed
        """
        self._check_open()
        new_ids = []
        skipped = 0
        for path in paths:
            try:
                photo_id = self._import_file(path)
            except PhotoImportError as e:
                logger.warning(str(e))
                continue
            if photo_id is None:
                skipped += 1
            else:
                new_ids.append(photo_id)

        logger.info(f"Imported {len(new_ids)} new photos ({skipped} already in catalog)")

        new_photos = [photo for photo in (self.catalog.get(photo_id) for photo_id in new_ids) if photo]
        if new_ids:
            self.queue.enqueue(new_ids)
        return new_photos

    def import_from(self, source: ImportSource) -> List[Photo]:
        """Import every path yielded by an import source."""
        return self.import_photos(source.get_paths())

    def _import_file(self, path: str) -> Optional[int]:
        """
        Import one file.

        Returns:
            The new photo id, or None if the path was already catalogued

        Raises:
            PhotoImportError: If the file can't be imported
        """
        file_path = os.path.abspath(os.path.expanduser(path))
        if not is_supported_image(file_path):
            raise PhotoImportError(f"Unsupported file type: {file_path}")
        if not os.path.isfile(file_path):
            raise PhotoImportError(f"File not found: {file_path}")

        if self.catalog.get_by_path(file_path) is not None:
            logger.debug(f"Already in catalog: {file_path}")
            return None

        metadata = self.extractor.extract(file_path)
        photo_id, was_new = self.catalog.create_or_get(file_path, metadata.taken_at, metadata.location)
        return photo_id if was_new else None

    def list_status(self) -> List[Photo]:
        """List all photos with their current status, newest first."""
        return self.catalog.list_photos()

    def search(self, term: Optional[str]) -> List[SearchHit]:
        """Search descriptions. A blank term lists everything."""
        return self.search_index.query(term)

    def edit(self, photo_id: int, text: str) -> Photo:
        """Replace a photo's description with user text."""
        return edit_description(self.catalog, photo_id, text)

    def restore(self, photo_id: int) -> Photo:
        """Restore the description from before the first edit."""
        return restore_description(self.catalog, photo_id)

    def enqueue(self, photo_ids: Iterable[int]) -> int:
        """Queue photos for description."""
        self._check_open()
        return self.queue.enqueue(photo_ids)

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the enrichment queue has drained."""
        return self.queue.wait_until_idle(timeout)

    def get_stats(self) -> Dict[str, Any]:
        """Catalog counts plus enrichment statistics."""
        stats = self.catalog.get_stats()
        stats['queue'] = self.queue.stats.to_dict()
        stats['queued_photos'] = len(self.queue.queued_ids())
        return stats

    def close(self, wait: bool = True) -> None:
        """
        Close the project.

        Args:
            wait: Let the enrichment queue finish before closing
        """
        if self._closed:
            return
        self.queue.close(wait=wait)
        self.catalog.close()
        self._closed = True
        logger.info(f"Closed project {self.project_path}")


def open_project(project_path: str, config: Optional[AppConfig] = None,
                 settings: Optional[SettingsStore] = None,
                 provider: Optional[DescriptionProvider] = None,
                 extractor: Optional[MetadataExtractor] = None,
                 recover: bool = True) -> Tuple[CatalogHandle, List[Photo]]:
    """
    Open or create the project in a directory.

    Creates the directory and catalog if needed, upgrades an older catalog,
    re-queues photos that still need a description and lists the catalog.

    Args:
        project_path: Project directory
        config: Application configuration
        settings: API settings store
        provider: Description service
        extractor: EXIF reader
        recover: Re-queue photos awaiting a description. Read-only tools pass
            False so opening the project starts no work.

    Returns:
        Tuple of (handle, all photos newest first)

    Raises:
        ProjectOpenError: If the directory or catalog can't be opened
    """
    config = config or AppConfig()
    project_path = os.path.abspath(os.path.expanduser(project_path))

    try:
        os.makedirs(project_path, exist_ok=True)
    except OSError as e:
        raise ProjectOpenError(f"Cannot open project directory {project_path}: {str(e)}") from e

    catalog_path = os.path.join(project_path, config.catalog_filename)
    try:
        catalog = CatalogDatabase(catalog_path, config)
    except (RuntimeError, OSError, sqlite3.Error) as e:
        raise ProjectOpenError(f"Cannot open catalog {catalog_path}: {str(e)}") from e

    if settings is None:
        settings = SettingsStore(config.settings_path, config.provider)
    if provider is None:
        provider = DescriptionProvider.get_provider(config)

    queue = EnrichmentQueue(catalog, provider, settings, config)
    handle = CatalogHandle(project_path, catalog, queue, extractor or MetadataExtractor())
    logger.info(f"Opened project {project_path}")

    if recover:
        handle.queue.recover()
    return handle, catalog.list_photos()
