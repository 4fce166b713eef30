"""Thumbnail rendering for image content."""

from io import BytesIO

from PIL import Image, ImageOps


def render_thumbnail(raw: bytes, max_size: int, quality: int) -> bytes:
    """Render a JPEG thumbnail that fits within a square bounding box.

    The aspect ratio is preserved and EXIF orientation is applied, so
    the longest side is at most ``max_size`` pixels.

    Args:
        raw: Source image content.
        max_size: Bounding box side in pixels.
        quality: JPEG quality (1-95).

    Returns:
        Encoded JPEG bytes.

    Raises:
        Exception: Anything Pillow raises for unreadable content.
    """
    with Image.open(BytesIO(raw)) as source:
        image = ImageOps.exif_transpose(source) or source
        image = image.convert('RGB')
        image.thumbnail((max_size, max_size))

        output = BytesIO()
        image.save(output, format='JPEG', quality=quality)
    return output.getvalue()
