import io
import logging
from typing import Optional

from PIL import Image, ImageOps

import mime_guard
from schemas import EncodedImage

logger = logging.getLogger(__name__)

# This module is the "Eyes" prep room. Phone photos of labels are huge, and the
# provider rejects oversized payloads, so every image is shrunk and flattened
# to a JPEG before it goes anywhere near the network.

DEFAULT_MAX_WIDTH = 800
DEFAULT_QUALITY = 0.7
WHITE = (255, 255, 255)

_DECODE_ERRORS = (OSError, ValueError, Image.DecompressionBombError)


def _jpeg_quality(quality: float) -> int:
    # 0.7 on a 0-1 scale -> 70 on Pillow's scale; Pillow discourages going above 95.
    return max(1, min(95, int(round(quality * 100))))


def scaled_size(width: int, height: int, max_width: int) -> tuple:
    """Proportional size that fits max_width. Images already narrow enough keep their size."""
    if width <= max_width:
        return width, height
    return max_width, max(1, round(height * max_width / width))


def normalize_image(
    image: EncodedImage,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
) -> EncodedImage:
    """
    Downscale to max_width (keeping the aspect ratio), flatten onto white and
    re-encode as JPEG at the given quality.

    Never raises: if the payload can't be decoded, the original is returned
    unchanged and the caller simply sends a bigger image.
    """
    try:
        raw = image.raw_bytes()
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            upright = ImageOps.exif_transpose(img)
            rgba = upright.convert("RGBA")

        size = scaled_size(rgba.width, rgba.height, max_width)
        if size != rgba.size:
            rgba = rgba.resize(size, Image.Resampling.LANCZOS)

        # Transparent pixels would turn black in JPEG, so paint a white card first.
        canvas = Image.new("RGB", rgba.size, WHITE)
        canvas.paste(rgba, mask=rgba.getchannel("A"))

        buffered = io.BytesIO()
        canvas.save(buffered, format="JPEG", quality=_jpeg_quality(quality))
    except _DECODE_ERRORS as e:
        logger.warning("Image normalization skipped, sending original payload: %s", e)
        return image

    return EncodedImage.from_bytes(buffered.getvalue(), "image/jpeg")


def intake_upload(
    raw: bytes,
    declared_mime: str,
    filename: str = "",
    *,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: float = DEFAULT_QUALITY,
    allow_webp: bool = True,
) -> EncodedImage:
    """
    Accept an uploaded or pasted image: check the declared type, then normalize.
    Raises InvalidMimeType for anything outside the whitelist.
    """
    mime = mime_guard.check_mime_type(declared_mime, filename, allow_webp)
    encoded = EncodedImage.from_bytes(raw, mime)
    return normalize_image(encoded, max_width=max_width, quality=quality)


def intake_uploaded_file(uploaded, settings) -> Optional[EncodedImage]:
    """Streamlit UploadedFile -> EncodedImage (None when nothing was uploaded)."""
    if uploaded is None:
        return None
    # Streamlit uses getvalue(), not read()
    return intake_upload(
        uploaded.getvalue(),
        uploaded.type,
        uploaded.name,
        max_width=settings.max_image_width,
        quality=settings.jpeg_quality,
        allow_webp=settings.allow_webp,
    )


def intake_pasted_image(pasted: Optional[Image.Image], settings) -> Optional[EncodedImage]:
    """Clipboard paste arrives as a decoded PIL image; round-trip it through PNG and the same intake."""
    if pasted is None:
        return None
    if pasted.mode not in ("RGB", "RGBA", "L", "LA", "P"):
        pasted = pasted.convert("RGBA")
    buffered = io.BytesIO()
    pasted.save(buffered, format="PNG")
    return intake_upload(
        buffered.getvalue(),
        "image/png",
        "pasted-image.png",
        max_width=settings.max_image_width,
        quality=settings.jpeg_quality,
        allow_webp=settings.allow_webp,
    )
