"""
Sources of candidate image paths for import.
"""

import os
from abc import ABC, abstractmethod
from typing import List, Iterable

from .logging_setup import get_logger
from .models import is_supported_image

logger = get_logger(__name__)


class ImportSource(ABC):
    """Yields absolute paths of supported image files."""

    @abstractmethod
    def get_paths(self) -> List[str]:
        """
        Get the candidate image paths.

        Returns:
            Absolute paths filtered to supported image extensions
        """


class FolderImportSource(ImportSource):
    """Images directly inside one folder (not recursive)."""

    def __init__(self, folder: str):
        self.folder = os.path.abspath(os.path.expanduser(folder))

    def get_paths(self) -> List[str]:
        try:
            names = sorted(os.listdir(self.folder))
        except OSError as e:
            logger.error(f"Error reading folder {self.folder}: {str(e)}")
            return []

        paths = [
            os.path.join(self.folder, name) for name in names
            if is_supported_image(name) and os.path.isfile(os.path.join(self.folder, name))
        ]
        logger.info(f"Found {len(paths)} images in {self.folder}")
        return paths


class FileListImportSource(ImportSource):
    """An explicit list of files, for example from a file dialog."""

    def __init__(self, paths: Iterable[str]):
        self.paths = list(paths)

    def get_paths(self) -> List[str]:
        result = []
        for path in self.paths:
            if not is_supported_image(path):
                logger.warning(f"Skipping unsupported file type: {path}")
                continue
            result.append(os.path.abspath(os.path.expanduser(path)))
        return result
