"""
Tests for editing and restoring descriptions.
"""
import os
import shutil
import tempfile
import unittest

from photo_catalog.catalog_db import CatalogDatabase
from photo_catalog.config import AppConfig
from photo_catalog.edit_workflow import edit_description, restore_description
from photo_catalog.exceptions import (
    EmptyDescriptionError, NoOriginalToRestoreError, PhotoNotFoundError,
)
from photo_catalog.models import STATUS_COMPLETED, STATUS_PENDING


class TestEditWorkflow(unittest.TestCase):
    """Test cases for edit_description and restore_description."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db = CatalogDatabase(os.path.join(self.temp_dir, "photo_catalog.db"), AppConfig())
        self.photo_id, _ = self.db.create_or_get(os.path.join(self.temp_dir, "a.jpg"), "2024-01-01T00:00:00")
        self.db.commit_description(self.photo_id, "AI text")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_first_edit_keeps_original(self):
        photo = edit_description(self.db, self.photo_id, "User text")

        self.assertEqual(photo.description_ai, "User text")
        self.assertEqual(photo.description_original, "AI text")
        self.assertTrue(photo.is_edited)
        self.assertEqual(photo.status, STATUS_COMPLETED)
        self.assertEqual(self.db.get_index_entry(self.photo_id), "User text")

    def test_second_edit_keeps_first_original(self):
        """Only the text from before the first edit is kept."""
        edit_description(self.db, self.photo_id, "First edit")
        photo = edit_description(self.db, self.photo_id, "Second edit")

        self.assertEqual(photo.description_ai, "Second edit")
        self.assertEqual(photo.description_original, "AI text")

    def test_blank_edit_rejected(self):
        """Blank text is refused and nothing changes."""
        for text in ("", "   \n\t", None):
            with self.assertRaises(EmptyDescriptionError):
                edit_description(self.db, self.photo_id, text)

        photo = self.db.get(self.photo_id)
        self.assertEqual(photo.description_ai, "AI text")
        self.assertFalse(photo.is_edited)
        self.assertIsNone(photo.description_original)

    def test_edit_stored_as_given(self):
        """Surrounding whitespace and line breaks are kept."""
        text = "  Two lines\n  of text\n"

        photo = edit_description(self.db, self.photo_id, text)

        self.assertEqual(photo.description_ai, text)
        self.assertEqual(self.db.get(self.photo_id).description_ai, text)
        self.assertEqual(self.db.get_index_entry(self.photo_id), text)

    def test_blank_edit_is_value_error(self):
        with self.assertRaises(ValueError):
            edit_description(self.db, self.photo_id, " ")

    def test_edit_unknown_photo(self):
        with self.assertRaises(PhotoNotFoundError):
            edit_description(self.db, 12345, "text")

    def test_restore(self):
        """Restore puts back the AI text and clears the edit state."""
        edit_description(self.db, self.photo_id, "First edit")
        edit_description(self.db, self.photo_id, "Second edit")

        photo = restore_description(self.db, self.photo_id)

        self.assertEqual(photo.description_ai, "AI text")
        self.assertFalse(photo.is_edited)
        self.assertIsNone(photo.description_original)
        self.assertEqual(self.db.get_index_entry(self.photo_id), "AI text")

    def test_restore_twice_fails(self):
        """After a restore there is nothing left to restore."""
        edit_description(self.db, self.photo_id, "Edit")
        restore_description(self.db, self.photo_id)

        with self.assertRaises(NoOriginalToRestoreError):
            restore_description(self.db, self.photo_id)

    def test_restore_unedited_fails(self):
        with self.assertRaises(NoOriginalToRestoreError):
            restore_description(self.db, self.photo_id)

    def test_restore_unknown_photo(self):
        with self.assertRaises(PhotoNotFoundError):
            restore_description(self.db, 12345)

    def test_edit_pending_photo(self):
        """A photo without AI text can be edited; status is left alone."""
        pending_id, _ = self.db.create_or_get(os.path.join(self.temp_dir, "b.jpg"), "2024-01-01T00:00:00")

        photo = edit_description(self.db, pending_id, "Written by hand")

        self.assertEqual(photo.status, STATUS_PENDING)
        self.assertEqual(photo.description_ai, "Written by hand")
        self.assertTrue(photo.is_edited)


if __name__ == '__main__':
    unittest.main()
