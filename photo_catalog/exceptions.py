"""
Exceptions raised by the photo catalog.
"""


class PhotoCatalogError(Exception):
    """Base class for photo catalog errors."""


class ProjectOpenError(PhotoCatalogError):
    """The project directory or its catalog file cannot be opened."""


class PhotoImportError(PhotoCatalogError):
    """A single file could not be imported; the rest of the batch continues."""


class ExtractionFailure(PhotoCatalogError):
    """EXIF metadata could not be read. Absorbed by the metadata extractor."""


class ProviderFailure(PhotoCatalogError):
    """The description service returned no usable description."""


class PhotoNotFoundError(PhotoCatalogError, KeyError):
    """No photo with the requested id exists in the catalog."""

    def __init__(self, photo_id):
        super().__init__(f"Photo not found: {photo_id}")
        self.photo_id = photo_id

    def __str__(self):
        return f"Photo not found: {self.photo_id}"


class EditValidationError(PhotoCatalogError, ValueError):
    """A user edit was rejected before touching the catalog."""


class EmptyDescriptionError(EditValidationError):
    """The edited description is blank."""


class RestoreUnavailableError(PhotoCatalogError):
    """There is nothing to restore for the photo."""


class NoOriginalToRestoreError(RestoreUnavailableError):
    """The photo was never edited, or its original description was not captured."""


class ProjectClosedError(PhotoCatalogError):
    """The project handle was used after it was closed."""
