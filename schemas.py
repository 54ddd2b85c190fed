"""
Data models shared by the engines and the UI.

Field names are snake_case in Python; the camelCase aliases are what the
analysis provider returns and what the profile record is stored as.
"""
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

import mime_guard


class ProductRole(str, Enum):
    HOME = "home"
    COMPETITOR = "competitor"


class Advantage(str, Enum):
    HOME = "home"
    COMPETITOR = "competitor"
    NEUTRAL = "neutral"


class Winner(str, Enum):
    HOME = "home"
    COMPETITOR = "competitor"


class ImageSize(str, Enum):
    """Resolution tiers for the marketing image. 1K is the base tier."""
    SIZE_1K = "1K"
    SIZE_2K = "2K"
    SIZE_4K = "4K"

    @property
    def is_pro(self) -> bool:
        return self in (ImageSize.SIZE_2K, ImageSize.SIZE_4K)


SOCIAL_PLATFORMS = ("facebook", "linkedin", "twitter", "youtube", "tiktok")


def resolve_winner(score_home: float, score_competitor: float) -> Winner:
    """Ties go to the home product."""
    return Winner.HOME if score_home >= score_competitor else Winner.COMPETITOR


# ==================== PROFILE ====================

class UserProfile(BaseModel):
    """The coach using the tool. At most one is stored per installation."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., description="Coach name used in copy and image footer")
    evaluation_link: str = Field("", alias="evaluationLink", description="Personal evaluation / booking link")
    cta_preference: str = Field("", alias="ctaPreference", description="Preferred call to action")
    api_key: str = Field("", alias="apiKey", description="Optional personal provider key")

    @field_validator("name", "evaluation_link", "cta_preference", "api_key", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else ("" if v is None else v)


# ==================== IMAGES & PRODUCTS ====================

class EncodedImage(BaseModel):
    """A self-describing image: MIME type plus raw base64 payload (no data URI prefix)."""
    mime_type: str = Field(mime_guard.DEFAULT_MIME_TYPE)
    data: str

    def to_data_uri(self) -> str:
        return mime_guard.to_data_uri(self.mime_type, self.data)

    @classmethod
    def from_bytes(cls, raw: bytes, mime_type: str) -> "EncodedImage":
        return cls(mime_type=mime_guard.normalize_mime(mime_type), data=mime_guard.b64encode(raw))

    def raw_bytes(self) -> bytes:
        return mime_guard.b64decode(self.data)


class ProductInput(BaseModel):
    """One side of the comparison. Lives only in UI state."""
    name: str
    front_image: Optional[EncodedImage] = None
    label_image: Optional[EncodedImage] = None
    notes: str = ""
    price: str = ""
    role: ProductRole = ProductRole.HOME

    @property
    def image_count(self) -> int:
        return sum(1 for img in (self.front_image, self.label_image) if img is not None)


# ==================== ANALYSIS RESULT ====================

class NutrientRow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nutrient: str
    home_value: str = Field("", alias="homeValue")
    competitor_value: str = Field("", alias="competitorValue")
    advantage: Advantage = Advantage.NEUTRAL


class SocialCopy(BaseModel):
    facebook: str
    linkedin: str
    twitter: str
    youtube: str
    tiktok: str

    def platforms(self) -> Iterator[Tuple[str, str]]:
        for platform in SOCIAL_PLATFORMS:
            yield platform, getattr(self, platform)


class ComparisonResult(BaseModel):
    """Structured response from the analysis provider."""
    model_config = ConfigDict(populate_by_name=True)

    verdict: str
    summary: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)
    score_home: float = Field(..., alias="scoreHome")
    score_competitor: float = Field(..., alias="scoreCompetitor")
    nutrient_comparison: List[NutrientRow] = Field(default_factory=list, alias="nutrientComparison")
    social_copy: SocialCopy = Field(..., alias="socialCopy")

    @property
    def winner(self) -> Winner:
        return resolve_winner(self.score_home, self.score_competitor)


class GeneratedImage(BaseModel):
    image: EncodedImage
    size: ImageSize = ImageSize.SIZE_1K
