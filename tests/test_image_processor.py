"""
Tests for the image processor module.
"""
import base64
import io
import os
import shutil
import tempfile
import unittest

import numpy as np
from PIL import Image

from photo_catalog.config import AppConfig
from photo_catalog.image_processor import ImageProcessor


def _decode(img_b64):
    return Image.open(io.BytesIO(base64.b64decode(img_b64)))


class TestImageProcessor(unittest.TestCase):
    """Test cases for the ImageProcessor class."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = AppConfig()
        self.config.image_max_resolution = 64
        self.processor = ImageProcessor(self.config)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_downscales_to_max_resolution(self):
        img = Image.fromarray(np.zeros((100, 200, 3), dtype=np.uint8))

        result = _decode(self.processor.prepare_image_for_ai(img))

        self.assertEqual(result.format, "JPEG")
        self.assertEqual(result.size, (64, 32))
        self.assertEqual(img.size, (200, 100))

    def test_small_image_kept(self):
        img = Image.fromarray(np.zeros((10, 20, 3), dtype=np.uint8))
        result = _decode(self.processor.prepare_image_for_ai(img))
        self.assertEqual(result.size, (20, 10))

    def test_transparency_flattened_on_white(self):
        """Fully transparent pixels come out white."""
        pixels = np.zeros((16, 16, 4), dtype=np.uint8)
        img = Image.fromarray(pixels)

        result = _decode(self.processor.prepare_image_for_ai(img)).convert('RGB')

        r, g, b = result.getpixel((8, 8))
        self.assertGreater(min(r, g, b), 240)

    def test_orientation_applied(self):
        """An orientation tag of 6 (rotate 90) swaps width and height."""
        path = os.path.join(self.temp_dir, "rotated.jpg")
        exif = Image.Exif()
        exif[0x0112] = 6
        Image.fromarray(np.zeros((20, 40, 3), dtype=np.uint8)).save(path, "JPEG", exif=exif)

        result = _decode(self.processor.load_image_b64(path))

        self.assertEqual(result.size, (20, 40))

    def test_load_missing_or_invalid(self):
        self.assertIsNone(self.processor.load_image_b64(os.path.join(self.temp_dir, "missing.jpg")))

        broken = os.path.join(self.temp_dir, "broken.png")
        with open(broken, 'wb') as f:
            f.write(b"\x89PNG not really")
        self.assertIsNone(self.processor.load_image_b64(broken))

    def test_none_image(self):
        self.assertIsNone(self.processor.prepare_image_for_ai(None))


if __name__ == '__main__':
    unittest.main()
