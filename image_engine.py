import logging
from typing import Callable, List, Optional

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

import mime_guard
from config import Settings
from comparison_engine import resolve_api_key
from errors import GenerationFailed, classify_provider_error
from schemas import EncodedImage, GeneratedImage, ImageSize, ProductInput, UserProfile, Winner

logger = logging.getLogger(__name__)

# The "Tale of the Tape" poster. A second, optional call to the provider that
# turns the verdict into a shareable side-by-side graphic.

ASPECT_RATIO = "1:1"


class ImageRequest(BaseModel):
    api_key: str = Field(..., repr=False)
    model: str
    prompt: str
    reference_image: Optional[EncodedImage] = None
    aspect_ratio: str = ASPECT_RATIO
    image_size: Optional[str] = None


def build_image_prompt(home_name: str, competitor_name: str, winner: Winner, coach_name: str) -> str:
    side = "LEFT" if winner == Winner.HOME else "RIGHT"
    return f"""Create a professional "Side-by-Side Comparison" marketing graphic.
  LEFT SIDE: Show a product that looks like the provided image ({home_name}).
  RIGHT SIDE: Show a generic competitor product labeled "{competitor_name}".
  CENTER: A high-contrast "VS" badge.
  WINNER HIGHLIGHT: The {side} side should have a vibrant golden glow and 5 stars.
  FOOTER TEXT: "Scientific Review by {coach_name}".
  PALETTE: Clean white clinical background with teal and gold accents.
  STYLE: High-end 3D product photography, commercial grade."""


def build_image_request(
    home: ProductInput,
    competitor: ProductInput,
    profile: UserProfile,
    size: ImageSize,
    winner: Winner,
    *,
    settings: Settings,
) -> ImageRequest:
    """
    Only the pro tiers (2K/4K) get the pro model and an explicit image_size;
    the base tier leaves the resolution to the model default.
    """
    api_key = resolve_api_key(profile, settings.gemini_api_key)
    size = ImageSize(size)

    # At most one reference image keeps the request under the provider's size limits.
    reference = home.front_image if home.front_image and home.front_image.data else None

    return ImageRequest(
        api_key=api_key,
        model=settings.pro_image_model if size.is_pro else settings.image_model,
        prompt=build_image_prompt(home.name, competitor.name, winner, profile.name),
        reference_image=reference,
        image_size=size.value if size.is_pro else None,
    )


def image_config(request: ImageRequest) -> types.ImageConfig:
    kwargs = {"aspect_ratio": request.aspect_ratio}
    if request.image_size:
        kwargs["image_size"] = request.image_size
    return types.ImageConfig(**kwargs)


def request_contents(request: ImageRequest) -> List[types.Part]:
    parts = []
    if request.reference_image is not None:
        ref = request.reference_image
        parts.append(types.Part.from_bytes(data=ref.raw_bytes(), mime_type=ref.mime_type))
    parts.append(types.Part.from_text(text=request.prompt))
    return parts


def first_inline_image(response) -> Optional[EncodedImage]:
    """Walk the first candidate's parts and return the first inline image found."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            data = inline.data
            payload = mime_guard.b64encode(data) if isinstance(data, bytes) else mime_guard.clean_base64(data)
            return EncodedImage(mime_type=inline.mime_type or "image/png", data=payload)
    return None


def generate_marketing_image(
    home: ProductInput,
    competitor: ProductInput,
    profile: UserProfile,
    size: ImageSize,
    winner: Winner,
    *,
    settings: Settings,
    client_factory: Optional[Callable] = None,
) -> GeneratedImage:
    """
    Raises AuthenticationMissing / AuthenticationRejected for credential problems
    and GenerationFailed for everything else, including "no image in the response".
    """
    request = build_image_request(home, competitor, profile, size, winner, settings=settings)
    client = (client_factory or genai.Client)(api_key=request.api_key)

    logger.info("Image generation: %s (size=%s)", request.model, request.image_size or "default")
    try:
        response = client.models.generate_content(
            model=request.model,
            contents=request_contents(request),
            config=types.GenerateContentConfig(
                response_modalities=["TEXT", "IMAGE"],
                image_config=image_config(request),
            ),
        )
    except Exception as e:
        raise classify_provider_error(e, fallback=GenerationFailed) from e

    image = first_inline_image(response)
    if image is None:
        logger.warning("Image model %s returned no inline image", request.model)
        raise GenerationFailed()
    return GeneratedImage(image=image, size=ImageSize(size))
