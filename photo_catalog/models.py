"""
Data models for catalog rows and search results.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

ALL_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)

# Statuses the enrichment queue may pick up
ENQUEUEABLE_STATUSES = (STATUS_PENDING, STATUS_FAILED)

SUPPORTED_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.gif', '.webp', '.bmp')


@dataclass
class Location:
    """GPS position in decimal degrees."""
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lon": self.lon}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["Location"]:
        if not data:
            return None
        return cls(lat=float(data["lat"]), lon=float(data["lon"]))


@dataclass
class Photo:
    """One catalog row."""
    id: int
    file_path: str
    taken_at: str
    created_at: str
    status: str = STATUS_PENDING
    location: Optional[Location] = None
    description_ai: Optional[str] = None
    description_original: Optional[str] = None
    is_edited: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display or JSON output."""
        result = asdict(self)
        result["location"] = self.location.to_dict() if self.location else None
        return result


@dataclass
class ExtractedMetadata:
    """Capture time and position read from a file's EXIF data."""
    taken_at: str
    location: Optional[Location] = None


@dataclass
class SearchHit:
    """A photo matched by a search, with the query term highlighted."""
    photo: Photo
    highlighted: str

    def to_dict(self) -> Dict[str, Any]:
        result = self.photo.to_dict()
        result["highlighted"] = self.highlighted
        return result


def is_supported_image(path: str) -> bool:
    """Check the file extension against the supported image types."""
    return path.lower().endswith(SUPPORTED_EXTENSIONS)
