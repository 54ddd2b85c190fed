import asyncio
import logging
from typing import Optional, Tuple

import httpx

from config import Settings
from schemas import EncodedImage, ProductInput, ProductRole
from vision_engine import normalize_image

logger = logging.getLogger(__name__)

# "Load Sample Pair": a quick demo without hunting for label photos.

HTTP_TIMEOUT = 10.0
SAMPLE_HEADERS = {"User-Agent": "TaleOfTheTape/1.0"}

SAMPLE_PRODUCTS = [
    {
        "name": "Tangy Tangerine 2.0",
        "front": "https://images.unsplash.com/photo-1626428099966-22d7f9c469a9?auto=format&fit=crop&q=80&w=400",
        "label": "https://plus.unsplash.com/premium_photo-1675716443562-b771d72a3da7?auto=format&fit=crop&q=80&w=400",
        "notes": "High bioavailability mineral complex.",
        "price": "",
    },
    {
        "name": "Generic Multivitamin",
        "front": "https://images.unsplash.com/photo-1471864190281-a93a3070b6de?auto=format&fit=crop&q=80&w=400",
        "label": "https://images.unsplash.com/photo-1550989460-0adf9ea622e2?auto=format&fit=crop&q=80&w=400",
        "notes": "Uses synthetic oxide forms.",
        "price": "$12.50",
    },
]


async def fetch_sample_image(
    url: str,
    client: httpx.AsyncClient,
    max_width: int = 600,
    quality: float = 0.7,
) -> Optional[EncodedImage]:
    """Download and shrink one sample image. Any failure just means no image."""
    try:
        response = await client.get(url, follow_redirects=True)
    except httpx.HTTPError as e:
        logger.warning("Sample image fetch failed for %s: %s", url, e)
        return None

    if response.status_code != 200:
        logger.warning("Sample image %s returned HTTP %s", url, response.status_code)
        return None
    content_type = response.headers.get("content-type", "").split(";")[0].strip()
    if not content_type.startswith("image/"):
        return None

    encoded = EncodedImage.from_bytes(response.content, content_type)
    # Samples can be smaller to save payload
    return normalize_image(encoded, max_width=max_width, quality=quality)


async def load_sample_pair(
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> Tuple[ProductInput, ProductInput]:
    home_spec, comp_spec = SAMPLE_PRODUCTS

    async def _fetch_all(http: httpx.AsyncClient):
        urls = [home_spec["front"], home_spec["label"], comp_spec["front"], comp_spec["label"]]
        tasks = [
            fetch_sample_image(u, http, settings.sample_image_width, settings.jpeg_quality)
            for u in urls
        ]
        return await asyncio.gather(*tasks)

    if client is None:
        async with httpx.AsyncClient(timeout=HTTP_TIMEOUT, headers=SAMPLE_HEADERS) as http:
            images = await _fetch_all(http)
    else:
        images = await _fetch_all(client)

    home_front, home_label, comp_front, comp_label = images
    home = ProductInput(
        name=home_spec["name"],
        front_image=home_front,
        label_image=home_label,
        notes=home_spec["notes"],
        price=home_spec["price"],
        role=ProductRole.HOME,
    )
    competitor = ProductInput(
        name=comp_spec["name"],
        front_image=comp_front,
        label_image=comp_label,
        notes=comp_spec["notes"],
        price=comp_spec["price"],
        role=ProductRole.COMPETITOR,
    )
    return home, competitor
