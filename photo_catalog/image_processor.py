"""
Prepare images for the description service.
"""

import io
import base64
from typing import Optional, Tuple

from PIL import Image, ImageOps

from .config import AppConfig
from .logging_setup import get_logger

logger = get_logger(__name__)

JPEG_QUALITY = 85
LARGE_IMAGE_PIXELS = 20_000_000
LARGE_IMAGE_MAX_SIDE = 800


class ImageProcessor:
    """Downscales photos and encodes them as base64 JPEG for upload."""

    def __init__(self, config: AppConfig):
        """
        Initialize the image processor.

        Args:
            config: Application configuration
        """
        self.config = config
        self.max_resolution = config.image_max_resolution

    def _max_side(self, size: Tuple[int, int]) -> int:
        width, height = size
        if width * height > LARGE_IMAGE_PIXELS:
            logger.debug(f"Image very large ({width}x{height}), limiting to {LARGE_IMAGE_MAX_SIDE}px")
            return min(self.max_resolution, LARGE_IMAGE_MAX_SIDE) if self.max_resolution else LARGE_IMAGE_MAX_SIDE
        return self.max_resolution

    @staticmethod
    def _to_rgb(img: Image.Image) -> Image.Image:
        """Flatten transparency onto white; JPEG has no alpha channel."""
        if img.mode in ('RGBA', 'LA') or (img.mode == 'P' and 'transparency' in img.info):
            rgba = img.convert('RGBA')
            background = Image.new('RGB', rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.getchannel('A'))
            return background
        if img.mode != 'RGB':
            return img.convert('RGB')
        return img

    def prepare_image_for_ai(self, img: Image.Image) -> Optional[str]:
        """
        Orient, downscale and encode an image as base64 JPEG.

        Args:
            img: PIL Image object

        Returns:
            Base64-encoded image string if successful, None otherwise
        """
        if not img:
            return None

        try:
            # Phone photos are often stored sideways with an orientation tag
            prepared = ImageOps.exif_transpose(img)

            max_side = self._max_side(prepared.size)
            if max_side and max(prepared.size) > max_side:
                if prepared is img:
                    prepared = img.copy()
                prepared.thumbnail((max_side, max_side))
                logger.debug(f"Resized image to {prepared.width}x{prepared.height}")

            prepared = self._to_rgb(prepared)

            with io.BytesIO() as buffer:
                prepared.save(buffer, format="JPEG", quality=JPEG_QUALITY)
                img_b64 = base64.b64encode(buffer.getvalue()).decode('utf-8')

            logger.debug(f"Prepared image for upload (base64 size: {len(img_b64)} chars)")
            return img_b64
        except Exception as e:
            logger.error(f"Error preparing image for upload: {str(e)}")
            return None

    def load_image_b64(self, file_path: str) -> Optional[str]:
        """
        Open an image file and prepare it for the description service.

        Args:
            file_path: Path to the image file

        Returns:
            Base64-encoded JPEG string if successful, None otherwise
        """
        try:
            with Image.open(file_path) as img:
                # First frame only for animated GIF/WebP
                img.seek(0)
                img.load()
                return self.prepare_image_for_ai(img)
        except (OSError, ValueError, EOFError) as e:
            logger.error(f"Cannot open image {file_path}: {str(e)}")
            return None
