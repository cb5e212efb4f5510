"""
User edits of AI descriptions, and restoring the AI text afterwards.
"""

from .catalog_db import CatalogDatabase
from .exceptions import EmptyDescriptionError, PhotoNotFoundError
from .logging_setup import get_logger
from .models import Photo

logger = get_logger(__name__)


def edit_description(catalog: CatalogDatabase, photo_id: int, text: str) -> Photo:
    """
    Replace a photo's description with user text.

    The text is stored exactly as given. The enrichment status is left as it is.

    Args:
        catalog: Project catalog
        photo_id: Photo to edit
        text: New description

    Returns:
        The updated photo

    Raises:
        EmptyDescriptionError: If the text is blank
        PhotoNotFoundError: If the photo doesn't exist
    """
    if text is None or not text.strip():
        raise EmptyDescriptionError("Description cannot be empty")

    catalog.update_description_edit(photo_id, text)
    logger.info(f"Description of photo {photo_id} edited")
    return _reload(catalog, photo_id)


def restore_description(catalog: CatalogDatabase, photo_id: int) -> Photo:
    """
    Undo user edits, putting back the description from before the first edit.

    Raises:
        NoOriginalToRestoreError: If the photo was never edited
        PhotoNotFoundError: If the photo doesn't exist
    """
    catalog.restore_original(photo_id)
    logger.info(f"Original description of photo {photo_id} restored")
    return _reload(catalog, photo_id)


def _reload(catalog: CatalogDatabase, photo_id: int) -> Photo:
    photo = catalog.get(photo_id)
    if photo is None:
        raise PhotoNotFoundError(photo_id)
    return photo
