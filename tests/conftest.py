import io
import json
from types import SimpleNamespace

import pytest
from PIL import Image

from config import Settings
from schemas import EncodedImage, ProductInput, ProductRole, UserProfile


def make_image_bytes(width=40, height=30, fmt="PNG", mode="RGB", color=(200, 30, 30)):
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_encoded(width=40, height=30, fmt="PNG", mime="image/png", **kwargs):
    return EncodedImage.from_bytes(make_image_bytes(width, height, fmt, **kwargs), mime)


def decode_size(image: EncodedImage):
    with Image.open(io.BytesIO(image.raw_bytes())) as img:
        return img.size


RESULT_PAYLOAD = {
    "verdict": "Tangy Tangerine delivers the better-absorbed minerals.",
    "summary": "Citrate forms and third-party testing beat a cheaper oxide blend.",
    "pros": ["Magnesium citrate", "Non-GMO verified"],
    "cons": ["Costs more per serving"],
    "scoreHome": 88,
    "scoreCompetitor": 64,
    "nutrientComparison": [
        {"nutrient": "Magnesium", "homeValue": "200mg (citrate)", "competitorValue": "250mg (oxide)", "advantage": "home"},
        {"nutrient": "Vitamin C", "homeValue": "90mg", "competitorValue": "90mg", "advantage": "neutral"},
    ],
    "socialCopy": {
        "facebook": "FB post #a #b #c #d #e",
        "linkedin": "LI post #a #b #c #d #e",
        "twitter": "X post #a #b #c #d #e",
        "youtube": "YT post #a #b #c #d #e",
        "tiktok": "TT post #a #b #c #d #e",
    },
}


@pytest.fixture
def result_payload():
    return json.loads(json.dumps(RESULT_PAYLOAD))


@pytest.fixture
def result_json(result_payload):
    return json.dumps(result_payload)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        gemini_api_key="",
        groq_api_key="",
        provider="gemini",
        image_policy="labels",
        profile_path=str(tmp_path / "profile.json"),
    )


@pytest.fixture
def profile():
    return UserProfile(
        name="Coach AJ",
        evaluation_link="x.co/aj",
        cta_preference="Book a free discovery call",
        api_key="AIzaTestKey123",
    )


@pytest.fixture
def keyless_profile():
    return UserProfile(
        name="Coach AJ",
        evaluation_link="x.co/aj",
        cta_preference="Book a free discovery call",
        api_key="",
    )


@pytest.fixture
def home_product():
    return ProductInput(
        name="Tangy Tangerine 2.0",
        front_image=make_encoded(color=(250, 150, 0)),
        label_image=make_encoded(color=(255, 255, 255)),
        notes="High bioavailability mineral complex.",
        role=ProductRole.HOME,
    )


@pytest.fixture
def competitor_product():
    return ProductInput(
        name="Generic Multivitamin",
        front_image=make_encoded(color=(10, 10, 200)),
        label_image=make_encoded(color=(240, 240, 240)),
        notes="Uses synthetic oxide forms.",
        price="$12.50",
        role=ProductRole.COMPETITOR,
    )


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


class FakeGenaiFactory:
    """Stands in for genai.Client: records the api_key and hands out FakeModels."""

    def __init__(self, response=None, error=None):
        self.models = FakeModels(response, error)
        self.api_keys = []

    def __call__(self, api_key):
        self.api_keys.append(api_key)
        return SimpleNamespace(models=self.models)


class ProviderError(Exception):
    """Looks like an SDK error: carries an HTTP status in `code`."""

    def __init__(self, code, message):
        super().__init__(f"{code} {message}")
        self.code = code


@pytest.fixture
def genai_factory():
    return FakeGenaiFactory
