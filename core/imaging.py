# core/imaging.py
"""Image transcode step applied to every upload.

Images are decoded with Pillow, downscaled so neither side exceeds a bound
(aspect ratio kept, never upscaled) and re-encoded in their original format.
Multi-picture JPEGs from cameras (MPO) are written back as plain JPEG.
"""
from io import BytesIO
from typing import Tuple
import math

from PIL import Image, ImageOps, UnidentifiedImageError

from core.config import settings, logger as core_logger
from core.errors import TranscodeError
from core.models import TranscodedImage

logger = core_logger.getChild("Imaging")

LOSSY_FORMATS = {"JPEG", "WEBP"}
# Formats that cannot store an alpha channel or palette as-is
RGB_ONLY_FORMATS = {"JPEG"}
# Source formats Pillow reports under another name than the one to encode with
OUTPUT_FORMATS = {"MPO": "JPEG"}


def compute_target_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Returns the (width, height) to render at so neither side exceeds `max_dimension`.

    The larger side becomes exactly `max_dimension`; the other is rounded
    down from the aspect ratio, so it can be 1px short of the exact value.
    Images already within bounds keep their size.
    """
    if max_dimension <= 0:
        raise ValueError(f"max_dimension must be positive, got {max_dimension}")
    if width <= max_dimension and height <= max_dimension:
        return width, height

    aspect = width / height
    if aspect > 1:
        return max_dimension, max(1, math.floor(max_dimension / aspect))
    return max(1, math.floor(max_dimension * aspect)), max_dimension


def _prepare_for_format(img: Image.Image, fmt: str) -> Image.Image:
    if fmt in RGB_ONLY_FORMATS and img.mode not in ("RGB", "L"):
        return img.convert("RGB")
    return img


def transcode_image(data: bytes, max_dimension: int = settings.IMAGE_MAX_DIMENSION,
                    quality: int = settings.IMAGE_QUALITY) -> TranscodedImage:
    """
    Downscales `data` to fit within `max_dimension` and re-encodes it.

    The EXIF orientation is applied first, so bounds hold for the image as it
    is displayed and the stored pixels are upright.

    Args:
        data: Raw bytes of the source image.
        max_dimension: Upper bound for both width and height.
        quality: Encoder quality, used only for lossy formats.

    Returns:
        TranscodedImage with the encoded bytes and final dimensions.

    Raises:
        TranscodeError: The input could not be decoded or the output could not be encoded.
    """
    # Every image created here; all are closed on the way out
    opened = []

    def track(img: Image.Image) -> Image.Image:
        if all(img is not other for other in opened):
            opened.append(img)
        return img

    try:
        try:
            source = track(Image.open(BytesIO(data)))
            source.load()
            source_format = source.format
            oriented = track(ImageOps.exif_transpose(source))
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
            logger.warning(f"Failed to decode image ({len(data)} bytes): {e}")
            raise TranscodeError(f"Could not decode image: {e}")

        if not source_format:
            raise TranscodeError("Could not determine the source image format.")
        fmt = OUTPUT_FORMATS.get(source_format, source_format)
        width, height = compute_target_size(oriented.width, oriented.height, max_dimension)

        if (width, height) != oriented.size:
            logger.debug(f"Resizing image from {oriented.width}x{oriented.height} to {width}x{height}")
            rendered = track(oriented.resize((width, height), Image.LANCZOS))
        else:
            rendered = oriented
        rendered = track(_prepare_for_format(rendered, fmt))

        save_kwargs = {"format": fmt}
        if fmt in LOSSY_FORMATS:
            save_kwargs["quality"] = quality
        buffer = BytesIO()
        try:
            rendered.save(buffer, **save_kwargs)
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"Failed to encode image as {fmt}: {e}")
            raise TranscodeError(f"Could not encode image as {fmt}: {e}")

        output = buffer.getvalue()
        logger.info(f"Transcoded {source_format} image {oriented.width}x{oriented.height} -> {fmt} {width}x{height} ({len(data)} -> {len(output)} bytes)")
        return TranscodedImage(
            data=output,
            width=width,
            height=height,
            format=fmt,
            content_type=Image.MIME.get(fmt, f"image/{fmt.lower()}"),
        )
    finally:
        for img in opened:
            img.close()
