import asyncio

import httpx

from samples import SAMPLE_PRODUCTS, fetch_sample_image, load_sample_pair
from schemas import ProductRole

from conftest import decode_size, make_image_bytes


def serve(routes):
    def handler(request):
        body = routes.get(str(request.url))
        if body is None:
            return httpx.Response(404)
        return httpx.Response(200, content=body, headers={"content-type": "image/png"})
    return httpx.MockTransport(handler)


def run_fetch(url, transport, **kwargs):
    async def go():
        async with httpx.AsyncClient(transport=transport) as client:
            return await fetch_sample_image(url, client, **kwargs)
    return asyncio.run(go())


def test_fetched_image_is_downscaled_to_sample_width():
    transport = serve({"https://img.test/a.png": make_image_bytes(1200, 900)})

    image = run_fetch("https://img.test/a.png", transport, max_width=600)

    assert image.mime_type == "image/jpeg"
    assert decode_size(image) == (600, 450)


def test_missing_image_yields_none():
    assert run_fetch("https://img.test/missing.png", serve({})) is None


def test_non_image_content_yields_none():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, text="<html>rate limited</html>", headers={"content-type": "text/html"})
    )

    assert run_fetch("https://img.test/a.png", transport) is None


def test_network_error_yields_none():
    def handler(request):
        raise httpx.ConnectError("offline", request=request)

    assert run_fetch("https://img.test/a.png", httpx.MockTransport(handler)) is None


def test_sample_pair_fills_both_sides(settings):
    home_spec, comp_spec = SAMPLE_PRODUCTS
    routes = {
        home_spec["front"]: make_image_bytes(800, 800),
        home_spec["label"]: make_image_bytes(400, 300),
        comp_spec["front"]: make_image_bytes(1000, 500),
    }

    async def go():
        async with httpx.AsyncClient(transport=serve(routes)) as client:
            return await load_sample_pair(settings, client)

    home, competitor = asyncio.run(go())

    assert home.name == "Tangy Tangerine 2.0"
    assert home.role == ProductRole.HOME
    assert decode_size(home.front_image) == (600, 600)
    assert decode_size(home.label_image) == (400, 300)
    assert competitor.role == ProductRole.COMPETITOR
    assert competitor.price == "$12.50"
    assert competitor.front_image is not None
    assert competitor.label_image is None
