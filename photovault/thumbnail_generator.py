"""
ThumbnailGenerator - Square, center-cropped thumbnails with Pillow.
"""

import io
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps


class ThumbnailGenerator:
    """
    Generates fixed-size square thumbnails from original images.

    The source is rotated according to its EXIF orientation, scaled to
    cover size x size and center-cropped.
    """

    OUTPUT_FORMATS = {
        '.jpg': ('JPEG', 'image/jpeg'),
        '.jpeg': ('JPEG', 'image/jpeg'),
        '.png': ('PNG', 'image/png'),
        '.gif': ('GIF', 'image/gif'),
        '.webp': ('WEBP', 'image/webp'),
    }

    def __init__(
        self,
        size: int = 100,
        quality: int = 85,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize thumbnail generator.

        Args:
            size: Edge length of the square thumbnail (default: 100)
            quality: JPEG/WEBP quality for output (default: 85)
            logger: Optional logger instance
        """
        self.size = size
        self.quality = quality
        self.logger = logger or logging.getLogger(__name__)

    def generate(
        self,
        image_data: bytes,
        original_extension: str
    ) -> Tuple[bytes, str]:
        """
        Generate a thumbnail from image data.

        Args:
            image_data: Original image as bytes
            original_extension: Original file extension (e.g., '.jpg')

        Returns:
            Tuple of (thumbnail_bytes, content_type)
        """
        try:
            with Image.open(io.BytesIO(image_data)) as src:
                img = ImageOps.exif_transpose(src)
                output_format, content_type = self._get_output_format(original_extension)
                img = self._convert_color_mode(img, output_format)
                img = ImageOps.fit(
                    img,
                    (self.size, self.size),
                    method=Image.Resampling.LANCZOS,
                    centering=(0.5, 0.5),
                )

                output = io.BytesIO()
                if output_format in ('JPEG', 'WEBP'):
                    img.save(output, format=output_format, quality=self.quality)
                elif output_format == 'PNG':
                    img.save(output, format='PNG', optimize=True)
                else:
                    img.save(output, format=output_format)

            return output.getvalue(), content_type

        except Exception as e:
            self.logger.error(f"Error generating thumbnail: {e}")
            raise

    def thumbnail_extension(self, extension: str) -> str:
        """Extension to store the thumbnail under, matching the bytes written."""
        ext_lower = extension.lower()
        if ext_lower in self.OUTPUT_FORMATS:
            return ext_lower
        return '.jpg'

    def _convert_color_mode(self, img: Image.Image, output_format: str) -> Image.Image:
        """Convert image to a color mode the output format can store."""
        if output_format == 'JPEG':
            if img.mode in ('RGBA', 'LA', 'P'):
                img = img.convert('RGBA')
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[-1])
                return background
            if img.mode != 'RGB':
                return img.convert('RGB')
            return img
        if img.mode not in ('RGB', 'RGBA', 'L', 'LA', 'P'):
            return img.convert('RGBA' if 'A' in img.getbands() else 'RGB')
        if img.mode == 'P':
            return img.convert('RGBA')
        return img

    def _get_output_format(self, extension: str) -> Tuple[str, str]:
        """Determine output format based on original extension."""
        return self.OUTPUT_FORMATS.get(extension.lower(), ('JPEG', 'image/jpeg'))
