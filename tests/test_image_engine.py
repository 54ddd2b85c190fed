from types import SimpleNamespace

import pytest

from config import Settings
from errors import AuthenticationMissing, AuthenticationRejected, GenerationFailed
from image_engine import build_image_prompt, build_image_request, first_inline_image, generate_marketing_image
from schemas import ImageSize, Winner

from conftest import ProviderError


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"


def image_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def text_part(text):
    return SimpleNamespace(text=text, inline_data=None)


def inline_part(data=PNG_BYTES, mime="image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime))


@pytest.fixture
def image_settings():
    return Settings(image_model="flash-image", pro_image_model="pro-image")


def test_base_tier_omits_resolution(image_settings, profile, home_product, competitor_product):
    request = build_image_request(
        home_product, competitor_product, profile, ImageSize.SIZE_1K, Winner.HOME, settings=image_settings
    )

    assert request.image_size is None
    assert request.model == "flash-image"
    assert request.aspect_ratio == "1:1"


@pytest.mark.parametrize("size", [ImageSize.SIZE_2K, ImageSize.SIZE_4K])
def test_pro_tiers_request_resolution(size, image_settings, profile, home_product, competitor_product):
    request = build_image_request(home_product, competitor_product, profile, size, Winner.HOME, settings=image_settings)

    assert request.image_size == size.value
    assert request.model == "pro-image"


def test_outbound_config_for_each_tier(genai_factory, image_settings, profile, home_product, competitor_product):
    sent = {}
    for size in ImageSize:
        factory = genai_factory(response=image_response(inline_part()))
        generate_marketing_image(
            home_product, competitor_product, profile, size, Winner.HOME,
            settings=image_settings, client_factory=factory,
        )
        sent[size] = factory.models.calls[0]["config"].image_config

    assert sent[ImageSize.SIZE_1K].image_size is None
    assert sent[ImageSize.SIZE_2K].image_size == "2K"
    assert sent[ImageSize.SIZE_4K].image_size == "4K"
    assert all(cfg.aspect_ratio == "1:1" for cfg in sent.values())


def test_only_the_home_front_image_is_used_as_reference(
    genai_factory, image_settings, profile, home_product, competitor_product
):
    factory = genai_factory(response=image_response(inline_part()))

    generate_marketing_image(
        home_product, competitor_product, profile, ImageSize.SIZE_1K, Winner.HOME,
        settings=image_settings, client_factory=factory,
    )

    contents = factory.models.calls[0]["contents"]
    assert len(contents) == 2
    assert contents[0].inline_data.data == home_product.front_image.raw_bytes()
    assert "VS" in contents[1].text


def test_no_reference_image_when_home_has_no_front_shot(image_settings, profile, home_product, competitor_product):
    home = home_product.model_copy(update={"front_image": None})

    request = build_image_request(home, competitor_product, profile, ImageSize.SIZE_1K, Winner.HOME, settings=image_settings)

    assert request.reference_image is None


def test_first_inline_image_is_returned(genai_factory, image_settings, profile, home_product, competitor_product):
    factory = genai_factory(response=image_response(text_part("here you go"), inline_part(), inline_part(b"second")))

    generated = generate_marketing_image(
        home_product, competitor_product, profile, ImageSize.SIZE_2K, Winner.COMPETITOR,
        settings=image_settings, client_factory=factory,
    )

    assert generated.image.raw_bytes() == PNG_BYTES
    assert generated.image.mime_type == "image/png"
    assert generated.size == ImageSize.SIZE_2K


def test_text_only_response_is_generation_failed(genai_factory, image_settings, profile, home_product, competitor_product):
    factory = genai_factory(response=image_response(text_part("I can't draw that")))

    with pytest.raises(GenerationFailed):
        generate_marketing_image(
            home_product, competitor_product, profile, ImageSize.SIZE_1K, Winner.HOME,
            settings=image_settings, client_factory=factory,
        )


def test_empty_candidates_yield_no_image():
    assert first_inline_image(SimpleNamespace(candidates=[])) is None
    assert first_inline_image(SimpleNamespace(candidates=None)) is None


def test_provider_errors_split_into_credential_and_generation(
    genai_factory, image_settings, profile, home_product, competitor_product
):
    for error, expected in [
        (ProviderError(403, "Forbidden"), AuthenticationRejected),
        (ProviderError(500, "Internal"), GenerationFailed),
    ]:
        factory = genai_factory(error=error)
        with pytest.raises(expected):
            generate_marketing_image(
                home_product, competitor_product, profile, ImageSize.SIZE_1K, Winner.HOME,
                settings=image_settings, client_factory=factory,
            )


def test_missing_key_fails_before_any_client_is_built(genai_factory, keyless_profile, home_product, competitor_product):
    factory = genai_factory(response=image_response(inline_part()))

    with pytest.raises(AuthenticationMissing):
        generate_marketing_image(
            home_product, competitor_product, keyless_profile, ImageSize.SIZE_1K, Winner.HOME,
            settings=Settings(gemini_api_key=""), client_factory=factory,
        )

    assert factory.api_keys == []


def test_prompt_highlights_the_winning_side():
    home_wins = build_image_prompt("Tangy", "Generic", Winner.HOME, "Coach AJ")
    comp_wins = build_image_prompt("Tangy", "Generic", Winner.COMPETITOR, "Coach AJ")

    assert "The LEFT side should have a vibrant golden glow" in home_wins
    assert "The RIGHT side should have a vibrant golden glow" in comp_wins
    assert 'Scientific Review by Coach AJ' in home_wins


def test_string_payloads_lose_any_data_uri_prefix():
    response = image_response(inline_part(data="data:image/png;base64,QUJD"))

    image = first_inline_image(response)

    assert image.data == "QUJD"
    assert image.mime_type == "image/png"
