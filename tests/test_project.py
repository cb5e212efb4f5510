"""
Tests for opening projects and importing photos.
"""
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

from photo_catalog.config import AppConfig
from photo_catalog.description_provider import DescriptionProvider
from photo_catalog.exceptions import ProjectOpenError, ProjectClosedError
from photo_catalog.import_source import FolderImportSource
from photo_catalog.models import STATUS_COMPLETED, STATUS_FAILED, STATUS_PENDING
from photo_catalog.project import open_project
from photo_catalog.settings import ApiConfig


class TestProject(unittest.TestCase):
    """Test cases for open_project and CatalogHandle."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.project_dir = os.path.join(self.temp_dir, "project")
        self.photo_dir = os.path.join(self.temp_dir, "photos")
        os.makedirs(self.photo_dir)

        self.config = AppConfig()
        self.config.background_enrichment = False
        self.config.memory_limit_mb = 0

        self.settings = MagicMock()
        self.settings.get_api_config.return_value = ApiConfig(api_key="sk-test-key-123")
        self.handles = []

    def tearDown(self):
        for handle in self.handles:
            handle.close()
        shutil.rmtree(self.temp_dir)

    def _provider(self, result="A described photo"):
        provider = MagicMock(spec=DescriptionProvider)
        provider.describe.return_value = result
        return provider

    def _open(self, provider, **kwargs):
        handle, photos = open_project(self.project_dir, self.config, settings=self.settings,
                                      provider=provider, **kwargs)
        self.handles.append(handle)
        return handle, photos

    def _image(self, name):
        path = os.path.join(self.photo_dir, name)
        with open(path, 'wb') as f:
            f.write(b"\xff\xd8\xff\xe0 not really a jpeg")
        return path

    def test_open_creates_catalog(self):
        """Opening a new directory creates it and an empty catalog."""
        handle, photos = self._open(self._provider())

        self.assertEqual(photos, [])
        self.assertTrue(os.path.isfile(os.path.join(self.project_dir, self.config.catalog_filename)))
        self.assertEqual(handle.get_stats()['total_photos'], 0)

    def test_open_path_is_file(self):
        """A file where the project directory should be can't be opened."""
        with open(self.project_dir, 'w') as f:
            f.write("not a directory")

        with self.assertRaises(ProjectOpenError):
            open_project(self.project_dir, self.config, settings=self.settings, provider=self._provider())

    def test_import_skips_existing(self):
        """Re-importing a known path creates nothing and doesn't re-queue it."""
        provider = self._provider()
        handle, _ = self._open(provider)
        first = self._image("1.jpg")
        handle.import_photos([first])
        provider.describe.reset_mock()

        new_photos = handle.import_photos([first, self._image("2.jpg"), self._image("3.png")])

        self.assertEqual(len(new_photos), 2)
        self.assertEqual(len(handle.list_status()), 3)
        self.assertEqual(provider.describe.call_count, 2)
        for photo in handle.list_status():
            self.assertEqual(photo.status, STATUS_COMPLETED)

    def test_import_returns_pending_snapshot(self):
        """Imported photos are returned as they were before description."""
        handle, _ = self._open(self._provider())

        new_photos = handle.import_photos([self._image("1.jpg")])

        self.assertEqual([photo.status for photo in new_photos], [STATUS_PENDING])
        self.assertIsNotNone(new_photos[0].taken_at)

    def test_import_bad_files_skipped(self):
        """Unsupported and missing files are skipped, the rest import."""
        handle, _ = self._open(self._provider())
        text_file = os.path.join(self.photo_dir, "notes.txt")
        with open(text_file, 'w') as f:
            f.write("hello")

        new_photos = handle.import_photos([
            text_file,
            os.path.join(self.photo_dir, "missing.jpg"),
            self._image("ok.jpeg"),
        ])

        self.assertEqual([os.path.basename(photo.file_path) for photo in new_photos], ["ok.jpeg"])

    def test_import_from_folder(self):
        handle, _ = self._open(self._provider())
        self._image("a.jpg")
        self._image("b.webp")
        with open(os.path.join(self.photo_dir, "readme.md"), 'w') as f:
            f.write("#")

        new_photos = handle.import_from(FolderImportSource(self.photo_dir))

        self.assertEqual(sorted(os.path.basename(p.file_path) for p in new_photos), ["a.jpg", "b.webp"])

    def test_failed_photos_recovered_on_reopen(self):
        """Photos that failed are described when the project is reopened."""
        handle, _ = self._open(self._provider(result=""))
        handle.import_photos([self._image("1.jpg")])
        self.assertEqual(handle.list_status()[0].status, STATUS_FAILED)
        handle.close()

        good = self._provider(result="A sunny meadow")
        handle, photos = self._open(good)

        self.assertEqual(len(photos), 1)
        photo = handle.list_status()[0]
        self.assertEqual(photo.status, STATUS_COMPLETED)
        self.assertEqual(photo.description_ai, "A sunny meadow")
        self.assertEqual([hit.photo.id for hit in handle.search("meadow")], [photo.id])

    def test_open_without_recover(self):
        """Read-only opens leave failed photos alone."""
        handle, _ = self._open(self._provider(result=None))
        handle.import_photos([self._image("1.jpg")])
        handle.close()

        provider = self._provider()
        handle, photos = self._open(provider, recover=False)

        provider.describe.assert_not_called()
        self.assertEqual(photos[0].status, STATUS_FAILED)

    def test_edit_and_restore_through_handle(self):
        handle, _ = self._open(self._provider(result="A harbour at dusk"))
        photo = handle.import_photos([self._image("1.jpg")])[0]

        edited = handle.edit(photo.id, "Boats in the harbour")
        self.assertEqual(edited.description_ai, "Boats in the harbour")
        self.assertEqual(len(handle.search("boats")), 1)

        restored = handle.restore(photo.id)
        self.assertEqual(restored.description_ai, "A harbour at dusk")
        self.assertEqual(handle.search("boats"), [])

    def test_stats(self):
        handle, _ = self._open(self._provider())
        handle.import_photos([self._image("1.jpg"), self._image("2.jpg")])

        stats = handle.get_stats()

        self.assertEqual(stats['total_photos'], 2)
        self.assertEqual(stats[STATUS_COMPLETED], 2)
        self.assertEqual(stats['indexed_photos'], 2)
        self.assertEqual(stats['queued_photos'], 0)
        self.assertEqual(stats['queue']['successful_photos'], 2)

    def test_close_is_idempotent(self):
        handle, _ = self._open(self._provider())
        handle.close()
        handle.close()

    def test_closed_handle_rejects_work(self):
        """Imports and enqueues on a closed handle raise instead of hanging."""
        provider = self._provider()
        handle, _ = self._open(provider)
        path = self._image("1.jpg")
        handle.close()

        with self.assertRaises(ProjectClosedError):
            handle.import_photos([path])
        with self.assertRaises(ProjectClosedError):
            handle.enqueue([1])
        provider.describe.assert_not_called()


if __name__ == '__main__':
    unittest.main()
