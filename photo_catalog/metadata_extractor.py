"""
Read capture time and GPS position from image EXIF data.
"""

from datetime import datetime
from typing import Optional, Any, Dict

from PIL import Image

from .exceptions import ExtractionFailure
from .logging_setup import get_logger
from .models import ExtractedMetadata, Location

logger = get_logger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825

TAG_DATETIME = 0x0132
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004

GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"


def _to_float(value: Any) -> float:
    """Convert an EXIF rational (IFDRational or (num, den) tuple) to float."""
    if isinstance(value, tuple):
        numerator, denominator = value
        return float(numerator) / float(denominator)
    return float(value)


def _dms_to_degrees(values: Any, ref: Any) -> Optional[float]:
    """Convert degrees/minutes/seconds plus hemisphere ref to signed decimal degrees."""
    if not values or len(values) < 3:
        return None
    degrees = _to_float(values[0]) + _to_float(values[1]) / 60 + _to_float(values[2]) / 3600
    if isinstance(ref, bytes):
        ref = ref.decode('ascii', errors='ignore')
    if ref and str(ref).strip().upper() in ('S', 'W'):
        degrees = -degrees
    return degrees


def parse_exif_datetime(value: Any) -> Optional[str]:
    """Parse an EXIF 'YYYY:MM:DD HH:MM:SS' string into ISO-8601, or None."""
    if not value:
        return None
    if isinstance(value, bytes):
        value = value.decode('ascii', errors='ignore')
    try:
        return datetime.strptime(str(value).strip().rstrip('\x00'), EXIF_DATETIME_FORMAT).isoformat()
    except ValueError:
        return None


def parse_gps(gps_info: Optional[Dict[int, Any]]) -> Optional[Location]:
    """Build a Location from a GPS IFD, or None if latitude or longitude is missing."""
    if not gps_info:
        return None
    lat = _dms_to_degrees(gps_info.get(GPS_LATITUDE), gps_info.get(GPS_LATITUDE_REF))
    lon = _dms_to_degrees(gps_info.get(GPS_LONGITUDE), gps_info.get(GPS_LONGITUDE_REF))
    if lat is None or lon is None:
        return None
    return Location(lat=round(lat, 7), lon=round(lon, 7))


class MetadataExtractor:
    """Reads EXIF capture time and GPS position with Pillow."""

    def extract(self, file_path: str) -> ExtractedMetadata:
        """
        Extract capture time and location from an image file.

        Never raises. When the file can't be read or carries no capture time,
        the current time is used; location is only set if GPS tags are present.

        Args:
            file_path: Path to the image

        Returns:
            ExtractedMetadata with taken_at always set
        """
        try:
            return self._read_exif(file_path)
        except Exception as e:
            logger.debug(f"No EXIF metadata for {file_path}: {str(e)}")
            return ExtractedMetadata(taken_at=self._now(), location=None)

    def _read_exif(self, file_path: str) -> ExtractedMetadata:
        try:
            with Image.open(file_path) as img:
                exif = img.getexif()
                exif_ifd = exif.get_ifd(EXIF_IFD) or {}
                gps_ifd = exif.get_ifd(GPS_IFD) or {}
                candidates = (
                    exif_ifd.get(TAG_DATETIME_ORIGINAL),
                    exif_ifd.get(TAG_DATETIME_DIGITIZED),
                    exif.get(TAG_DATETIME),
                )
        except (OSError, ValueError, SyntaxError) as e:
            raise ExtractionFailure(f"Cannot read EXIF from {file_path}: {str(e)}")

        taken_at = None
        for candidate in candidates:
            taken_at = parse_exif_datetime(candidate)
            if taken_at:
                break

        try:
            location = parse_gps(gps_ifd)
        except (ValueError, TypeError, ZeroDivisionError) as e:
            logger.debug(f"Ignoring malformed GPS data in {file_path}: {str(e)}")
            location = None

        return ExtractedMetadata(taken_at=taken_at or self._now(), location=location)

    @staticmethod
    def _now() -> str:
        return datetime.now().isoformat(timespec='seconds')
