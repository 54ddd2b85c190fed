import json
import re
import logging
from enum import Enum
from typing import Callable, List, Optional

from google import genai
from google.genai import types
from groq import Groq
from pydantic import BaseModel, Field, ValidationError

from config import DEFAULT_PROVIDER, Settings
from errors import AnalysisFailure, AuthenticationMissing, classify_provider_error
from schemas import ComparisonResult, EncodedImage, ProductInput, UserProfile

logger = logging.getLogger(__name__)

# This module is the "Brain" relay. Nothing is scored locally: we describe the
# job, attach the label photos, declare the JSON shape we want back, and let
# the provider do the clinical comparison.


class ImagePolicy(str, Enum):
    LABELS = "labels"  # bandwidth-constrained: label photos only
    ALL = "all"        # front + label photo for both products

    @classmethod
    def parse(cls, value: str) -> "ImagePolicy":
        try:
            return cls((value or "").lower())
        except ValueError:
            logger.warning("Unknown image policy %r, using %r", value, cls.LABELS.value)
            return cls.LABELS


# ==================== RESPONSE SCHEMA ====================

ADVANTAGE_VALUES = ["home", "competitor", "neutral"]

COMPARISON_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "verdict": {"type": "STRING"},
        "summary": {"type": "STRING"},
        "pros": {"type": "ARRAY", "items": {"type": "STRING"}},
        "cons": {"type": "ARRAY", "items": {"type": "STRING"}},
        "scoreHome": {"type": "NUMBER"},
        "scoreCompetitor": {"type": "NUMBER"},
        "nutrientComparison": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "nutrient": {"type": "STRING"},
                    "homeValue": {"type": "STRING"},
                    "competitorValue": {"type": "STRING"},
                    "advantage": {"type": "STRING", "enum": ADVANTAGE_VALUES},
                },
                "required": ["nutrient", "homeValue", "competitorValue", "advantage"],
            },
        },
        "socialCopy": {
            "type": "OBJECT",
            "properties": {
                "facebook": {"type": "STRING"},
                "linkedin": {"type": "STRING"},
                "twitter": {"type": "STRING"},
                "youtube": {"type": "STRING"},
                "tiktok": {"type": "STRING"},
            },
            "required": ["facebook", "linkedin", "twitter", "youtube", "tiktok"],
        },
    },
    "required": [
        "verdict", "summary", "pros", "cons",
        "scoreHome", "scoreCompetitor", "nutrientComparison", "socialCopy",
    ],
}


# ==================== REQUEST MODEL ====================

class RequestPart(BaseModel):
    """One content part: either an image or a caption / text block."""
    text: Optional[str] = None
    image: Optional[EncodedImage] = None

    @property
    def is_image(self) -> bool:
        return self.image is not None


class ComparisonRequest(BaseModel):
    api_key: str = Field(..., repr=False)
    model: str
    system_instruction: str
    parts: List[RequestPart]
    response_schema: dict = Field(default_factory=lambda: COMPARISON_SCHEMA)

    @property
    def image_parts(self) -> List[RequestPart]:
        return [p for p in self.parts if p.is_image]

    @property
    def captions(self) -> List[str]:
        return [p.text for p in self.parts if not p.is_image and p.text]


# ==================== BUILDER ====================

def resolve_api_key(profile: UserProfile, env_default: str = "") -> str:
    """The user's own key wins; otherwise the environment default; otherwise fail fast."""
    key = (profile.api_key or "").strip() or (env_default or "").strip()
    if not key:
        raise AuthenticationMissing()
    return key


def build_system_instruction(home: ProductInput, competitor: ProductInput, profile: UserProfile) -> str:
    cta_rule = (
        f'\n  - CALL TO ACTION: Close every social post with "{profile.cta_preference}".'
        if profile.cta_preference else ""
    )
    return f"""You are a world-class Nutritional Science Expert.
  Compare "{home.name}" (Home) vs "{competitor.name}" (Competitor).

  CRITICAL RULES:
  - DO NOT REPEAT phrases or reasoning. Every sentence must add new information.
  - PROVIDE DATA: Focus on specific mg/mcg values, bioavailability (citrate vs oxide), and non-GMO/Organic status.
  - HONESTY: Acknowledge if the competitor is cheaper or has a higher dose of one specific thing, but explain why Home quality is superior overall.
  - FORMAT: Always end every social post with exactly 5 relevant health hashtags.
  - Personalize with Name: {profile.name} and Link: {profile.evaluation_link}.{cta_rule}

  Return valid JSON."""


def _image_targets(home: ProductInput, competitor: ProductInput, policy: ImagePolicy):
    if policy == ImagePolicy.ALL:
        return [
            (home.front_image, "Home Front"),
            (home.label_image, "Home Label"),
            (competitor.front_image, "Competitor Front"),
            (competitor.label_image, "Competitor Label"),
        ]
    return [
        (home.label_image, "Home Label"),
        (competitor.label_image, "Competitor Label"),
    ]


def build_context_text(home: ProductInput, competitor: ProductInput) -> str:
    text = f"Compare these products. Home: {home.notes or 'High quality'}."
    if home.price:
        text += f" Home Price: {home.price}."
    text += f" Comp: {competitor.notes or 'N/A'}. Comp Price: {competitor.price or 'N/A'}."
    return text


def build_comparison_request(
    home: ProductInput,
    competitor: ProductInput,
    profile: UserProfile,
    *,
    policy: ImagePolicy = ImagePolicy.LABELS,
    env_default_key: str = "",
    model: str = Settings.analysis_model,
) -> ComparisonRequest:
    """
    Assemble the multimodal request. Credentials are resolved first so a missing
    key fails before any work (or network call) happens. An absent image drops
    its whole (image, caption) pair.
    """
    api_key = resolve_api_key(profile, env_default_key)

    parts: List[RequestPart] = []
    for image, caption in _image_targets(home, competitor, policy):
        if image is None or not image.data:
            continue
        parts.append(RequestPart(image=image))
        parts.append(RequestPart(text=caption))

    parts.append(RequestPart(text=build_context_text(home, competitor)))

    return ComparisonRequest(
        api_key=api_key,
        model=model,
        system_instruction=build_system_instruction(home, competitor, profile),
        parts=parts,
    )


# ==================== RESPONSE PARSING ====================

_FENCE_RE = re.compile(r"^```[A-Za-z0-9_-]*\s*|\s*```$")


def strip_markdown_json(raw_text: str) -> str:
    """Models sometimes wrap the payload in a ``` fence (with or without a language tag); unwrap it."""
    return _FENCE_RE.sub("", (raw_text or "").strip()).strip()


def parse_comparison_result(raw_text: Optional[str]) -> ComparisonResult:
    cleaned = strip_markdown_json(raw_text or "")
    if not cleaned:
        raise AnalysisFailure()
    try:
        return ComparisonResult.model_validate(json.loads(cleaned))
    except json.JSONDecodeError as e:
        logger.error("Provider returned malformed JSON: %s", e)
        raise AnalysisFailure(f"{AnalysisFailure.user_message} (malformed response)") from e
    except ValidationError as e:
        logger.error("Provider response did not match the comparison schema: %s", e)
        raise AnalysisFailure(f"{AnalysisFailure.user_message} (incomplete response)") from e


# ==================== PROVIDERS ====================

class GeminiAnalyzer:
    """Google Gemini via google-genai, with structured JSON output."""

    def __init__(self, client_factory: Optional[Callable] = None):
        self.client_factory = client_factory or genai.Client

    @staticmethod
    def to_parts(request: ComparisonRequest) -> List[types.Part]:
        parts = []
        for part in request.parts:
            if part.is_image:
                parts.append(types.Part.from_bytes(data=part.image.raw_bytes(), mime_type=part.image.mime_type))
            else:
                parts.append(types.Part.from_text(text=part.text))
        return parts

    def __call__(self, request: ComparisonRequest) -> str:
        client = self.client_factory(api_key=request.api_key)
        response = client.models.generate_content(
            model=request.model,
            contents=self.to_parts(request),
            config=types.GenerateContentConfig(
                system_instruction=request.system_instruction,
                response_mime_type="application/json",
                response_schema=request.response_schema,
            ),
        )
        return response.text or ""


class GroqAnalyzer:
    """Groq vision model. No native schema support, so the schema rides in the system prompt."""

    def __init__(self, client_factory: Optional[Callable] = None):
        self.client_factory = client_factory or Groq

    @staticmethod
    def to_messages(request: ComparisonRequest) -> list:
        content = []
        for part in request.parts:
            if part.is_image:
                content.append({"type": "image_url", "image_url": {"url": part.image.to_data_uri()}})
            else:
                content.append({"type": "text", "text": part.text})
        system = (
            f"{request.system_instruction}\n\n"
            f"Return ONLY raw JSON matching this schema:\n{json.dumps(request.response_schema)}"
        )
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": content},
        ]

    def __call__(self, request: ComparisonRequest) -> str:
        client = self.client_factory(api_key=request.api_key)
        completion = client.chat.completions.create(
            model=request.model,
            messages=self.to_messages(request),
            temperature=0,  # Keep it factual
            response_format={"type": "json_object"},
        )
        return completion.choices[0].message.content or ""


ANALYZERS = {
    "gemini": GeminiAnalyzer,
    "groq": GroqAnalyzer,
}


def get_analyzer(provider: str):
    analyzer_cls = ANALYZERS.get(provider)
    if analyzer_cls is None:
        logger.warning("Unknown analysis provider %r, using %s", provider, DEFAULT_PROVIDER)
        analyzer_cls = ANALYZERS[DEFAULT_PROVIDER]
    return analyzer_cls()


def model_for(settings: Settings) -> str:
    return settings.groq_vision_model if settings.provider == "groq" else settings.analysis_model


# ==================== ENTRY POINT ====================

def analyze_products(
    home: ProductInput,
    competitor: ProductInput,
    profile: UserProfile,
    settings: Settings,
    analyzer: Optional[Callable[[ComparisonRequest], str]] = None,
) -> ComparisonResult:
    """
    One request, one response, no retries. Failures come out as either a
    CredentialError or an AnalysisFailure.
    """
    request = build_comparison_request(
        home,
        competitor,
        profile,
        policy=ImagePolicy.parse(settings.image_policy),
        env_default_key=settings.default_api_key(),
        model=model_for(settings),
    )
    analyzer = analyzer or get_analyzer(settings.provider)

    logger.info(
        "Analysis: %s via %s (%d images, %d parts)",
        request.model, settings.provider, len(request.image_parts), len(request.parts),
    )
    try:
        raw_text = analyzer(request)
    except Exception as e:
        raise classify_provider_error(e) from e

    return parse_comparison_result(raw_text)
