import base64
import binascii
from typing import Iterable, List, Tuple

from errors import InvalidMimeType

# Gatekeeper for everything that claims to be an image.
# Browsers (and Streamlit uploads) hand us a declared MIME type; we only trust a short whitelist.

BASE_MIME_TYPES = ("image/jpeg", "image/png")
WEBP_MIME_TYPE = "image/webp"
DEFAULT_MIME_TYPE = "image/jpeg"

# Browsers sometimes report these aliases for the same formats.
_MIME_ALIASES = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
    "image/x-png": "image/png",
}


def accepted_mime_types(allow_webp: bool = True) -> Tuple[str, ...]:
    if allow_webp:
        return BASE_MIME_TYPES + (WEBP_MIME_TYPE,)
    return BASE_MIME_TYPES


def normalize_mime(mime_type: str) -> str:
    mime = (mime_type or "").split(";")[0].strip().lower()
    return _MIME_ALIASES.get(mime, mime)


def is_valid_image(mime_type: str, allow_webp: bool = True) -> bool:
    return normalize_mime(mime_type) in accepted_mime_types(allow_webp)


def validate_files(files: Iterable, allow_webp: bool = True) -> Tuple[List, List[str]]:
    """
    Split a batch of uploads into (valid, invalid_messages) without raising.
    Each file needs a `.name` and a `.type` (Streamlit's UploadedFile has both).
    """
    valid = []
    invalid = []
    for f in files:
        if is_valid_image(getattr(f, "type", ""), allow_webp):
            valid.append(f)
        else:
            kinds = "/".join(m.split("/")[1].upper() for m in accepted_mime_types(allow_webp))
            invalid.append(f"{getattr(f, 'name', 'file')} is not a valid image ({kinds} only)")
    return valid, invalid


def clean_base64(data: str) -> str:
    """Strip any data URI prefix and return only the raw base64 payload."""
    if not data:
        return ""
    parts = data.split(",", 1)
    return parts[1].strip() if len(parts) > 1 else parts[0].strip()


def to_data_uri(mime_type: str, payload: str) -> str:
    return f"data:{mime_type};base64,{payload}"


def b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("utf-8")


def b64decode(payload: str) -> bytes:
    """Strict decode; raises ValueError (binascii.Error) on garbage."""
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e


def check_mime_type(mime_type: str, filename: str = "", allow_webp: bool = True) -> str:
    """Return the normalized MIME type, or raise InvalidMimeType."""
    mime = normalize_mime(mime_type)
    if mime not in accepted_mime_types(allow_webp):
        raise InvalidMimeType(filename, mime_type)
    return mime
