"""
Tests for import sources.
"""
import os
import shutil
import tempfile
import unittest

from photo_catalog.import_source import FolderImportSource, FileListImportSource


class TestImportSources(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        for name in ("b.JPG", "a.png", "notes.txt", "c.gif"):
            with open(os.path.join(self.temp_dir, name), 'wb') as f:
                f.write(b"x")
        os.makedirs(os.path.join(self.temp_dir, "sub.jpg"))
        with open(os.path.join(self.temp_dir, "sub.jpg", "inner.jpg"), 'wb') as f:
            f.write(b"x")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_folder_lists_images_only(self):
        """Only image files directly in the folder are returned, sorted."""
        paths = FolderImportSource(self.temp_dir).get_paths()
        self.assertEqual([os.path.basename(p) for p in paths], ["a.png", "b.JPG", "c.gif"])
        self.assertTrue(all(os.path.isabs(p) for p in paths))

    def test_missing_folder(self):
        self.assertEqual(FolderImportSource(os.path.join(self.temp_dir, "nope")).get_paths(), [])

    def test_file_list_filters_extensions(self):
        source = FileListImportSource(["photo.jpeg", "doc.pdf", "/abs/pic.bmp"])
        paths = source.get_paths()
        self.assertEqual(paths, [os.path.abspath("photo.jpeg"), "/abs/pic.bmp"])


if __name__ == '__main__':
    unittest.main()
