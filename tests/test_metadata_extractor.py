"""
Tests for the metadata extractor module.
"""
import os
import shutil
import tempfile
import unittest
from datetime import datetime
from unittest.mock import patch, MagicMock

import numpy as np
from PIL import Image

from photo_catalog.metadata_extractor import (
    MetadataExtractor, parse_exif_datetime, parse_gps,
    EXIF_IFD, GPS_IFD, TAG_DATETIME, TAG_DATETIME_ORIGINAL,
)
from photo_catalog.models import Location


class FakeExif(dict):
    """Minimal stand-in for PIL.Image.Exif."""

    def __init__(self, base=None, ifds=None):
        super().__init__(base or {})
        self.ifds = ifds or {}

    def get_ifd(self, tag):
        return self.ifds.get(tag, {})


class TestParsers(unittest.TestCase):
    """Test cases for the EXIF value parsers."""

    def test_parse_exif_datetime(self):
        self.assertEqual(parse_exif_datetime("2021:06:07 08:09:10"), "2021-06-07T08:09:10")
        self.assertEqual(parse_exif_datetime(b"2021:06:07 08:09:10\x00"), "2021-06-07T08:09:10")
        self.assertIsNone(parse_exif_datetime("0000:00:00 00:00:00"))
        self.assertIsNone(parse_exif_datetime("yesterday"))
        self.assertIsNone(parse_exif_datetime(None))

    def test_parse_gps_floats(self):
        location = parse_gps({1: 'N', 2: (40.0, 26.0, 46.0), 3: 'W', 4: (79.0, 58.0, 56.0)})
        self.assertAlmostEqual(location.lat, 40.446111, places=5)
        self.assertAlmostEqual(location.lon, -79.982222, places=5)

    def test_parse_gps_rational_tuples(self):
        location = parse_gps({
            1: b'S', 2: ((33, 1), (51, 1), (5400, 100)),
            3: b'E', 4: ((151, 1), (12, 1), (3000, 100)),
        })
        self.assertAlmostEqual(location.lat, -33.865, places=5)
        self.assertAlmostEqual(location.lon, 151.208333, places=5)

    def test_parse_gps_incomplete(self):
        self.assertIsNone(parse_gps({}))
        self.assertIsNone(parse_gps(None))
        self.assertIsNone(parse_gps({1: 'N', 2: (40.0, 26.0, 46.0)}))


class TestMetadataExtractor(unittest.TestCase):
    """Test cases for the MetadataExtractor class."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.extractor = MetadataExtractor()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def _assert_recent(self, taken_at):
        parsed = datetime.fromisoformat(taken_at)
        self.assertLess(abs((datetime.now() - parsed).total_seconds()), 60)

    def test_jpeg_with_datetime(self):
        """The base DateTime tag is used when present."""
        path = os.path.join(self.temp_dir, "dated.jpg")
        exif = Image.Exif()
        exif[TAG_DATETIME] = "2020:01:02 03:04:05"
        Image.fromarray(np.zeros((16, 16, 3), dtype=np.uint8)).save(path, "JPEG", exif=exif)

        metadata = self.extractor.extract(path)

        self.assertEqual(metadata.taken_at, "2020-01-02T03:04:05")
        self.assertIsNone(metadata.location)

    def test_png_without_exif(self):
        """No EXIF means now() and no location."""
        path = os.path.join(self.temp_dir, "plain.png")
        Image.fromarray(np.zeros((8, 8, 3), dtype=np.uint8)).save(path)

        metadata = self.extractor.extract(path)

        self._assert_recent(metadata.taken_at)
        self.assertIsNone(metadata.location)

    def test_corrupt_file(self):
        """Unreadable files fall back instead of raising."""
        path = os.path.join(self.temp_dir, "corrupt.jpg")
        with open(path, 'wb') as f:
            f.write(b"\xff\xd8garbage")

        metadata = self.extractor.extract(path)

        self._assert_recent(metadata.taken_at)
        self.assertIsNone(metadata.location)

    def test_missing_file(self):
        metadata = self.extractor.extract(os.path.join(self.temp_dir, "missing.jpg"))
        self._assert_recent(metadata.taken_at)

    @patch('photo_catalog.metadata_extractor.Image.open')
    def test_original_time_and_gps(self, mock_open):
        """DateTimeOriginal wins over DateTime, GPS becomes a location."""
        fake_exif = FakeExif(
            base={TAG_DATETIME: "2022:02:02 02:02:02"},
            ifds={
                EXIF_IFD: {TAG_DATETIME_ORIGINAL: "2021:06:07 08:09:10"},
                GPS_IFD: {1: 'N', 2: (48.0, 51.0, 30.0), 3: 'E', 4: (2.0, 17.0, 40.0)},
            }
        )
        mock_img = MagicMock()
        mock_img.__enter__.return_value = mock_img
        mock_img.getexif.return_value = fake_exif
        mock_open.return_value = mock_img

        metadata = self.extractor.extract("/photos/paris.jpg")

        self.assertEqual(metadata.taken_at, "2021-06-07T08:09:10")
        self.assertAlmostEqual(metadata.location.lat, 48.858333, places=5)
        self.assertAlmostEqual(metadata.location.lon, 2.294444, places=5)

    @patch('photo_catalog.metadata_extractor.Image.open')
    def test_malformed_gps_ignored(self, mock_open):
        """Broken GPS values drop the location but keep the capture time."""
        fake_exif = FakeExif(
            base={TAG_DATETIME: "2022:02:02 02:02:02"},
            ifds={GPS_IFD: {1: 'N', 2: ((1, 0), (0, 1), (0, 1)), 3: 'E', 4: (2.0, 0.0, 0.0)}}
        )
        mock_img = MagicMock()
        mock_img.__enter__.return_value = mock_img
        mock_img.getexif.return_value = fake_exif
        mock_open.return_value = mock_img

        metadata = self.extractor.extract("/photos/odd.jpg")

        self.assertEqual(metadata.taken_at, "2022-02-02T02:02:02")
        self.assertIsNone(metadata.location)

    @patch('photo_catalog.metadata_extractor.Image.open')
    def test_unexpected_error_falls_back(self, mock_open):
        mock_open.side_effect = MemoryError("huge")
        metadata = self.extractor.extract("/photos/huge.jpg")
        self._assert_recent(metadata.taken_at)
        self.assertIsNone(metadata.location)


class TestLocation(unittest.TestCase):

    def test_round_trip_dict(self):
        location = Location(lat=1.5, lon=-2.25)
        self.assertEqual(Location.from_dict(location.to_dict()), location)
        self.assertIsNone(Location.from_dict(None))


if __name__ == '__main__':
    unittest.main()
