import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load .env from project root (same folder as app.py)
load_dotenv()

logger = logging.getLogger(__name__)

PROVIDERS = ("gemini", "groq")
DEFAULT_PROVIDER = "gemini"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_logging_configured = False


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _provider() -> str:
    provider = os.getenv("ANALYSIS_PROVIDER", DEFAULT_PROVIDER).strip().lower()
    if provider not in PROVIDERS:
        logger.warning("ANALYSIS_PROVIDER=%r is not one of %s, using %s", provider, PROVIDERS, DEFAULT_PROVIDER)
        return DEFAULT_PROVIDER
    return provider


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, read once from the environment."""

    # Environment default credential, used when the profile carries no key.
    gemini_api_key: str = ""
    groq_api_key: str = ""
    provider: str = DEFAULT_PROVIDER

    analysis_model: str = "gemini-3-flash-preview"
    groq_vision_model: str = "meta-llama/llama-4-scout-17b-16e-instruct"
    image_model: str = "gemini-2.5-flash-image"
    pro_image_model: str = "gemini-3-pro-image-preview"

    # "labels" sends only the two label photos, "all" sends all four.
    image_policy: str = "labels"

    max_image_width: int = 800
    sample_image_width: int = 600
    jpeg_quality: float = 0.7
    allow_webp: bool = True

    profile_path: str = os.path.join("~", ".tale_of_the_tape", "profile.json")
    theme: str = "clinical"
    copy_feedback_seconds: float = 2.0
    log_level: str = "INFO"

    def default_api_key(self, provider: Optional[str] = None) -> str:
        """Environment key for the given provider family (or the configured one)."""
        if (provider or self.provider) == "groq":
            return self.groq_api_key
        return self.gemini_api_key


def load_settings() -> Settings:
    """Build a Settings object from os.environ (after .env has been loaded)."""
    gemini_key = (
        os.getenv("GEMINI_API_KEY")
        or os.getenv("API_KEY")
        or os.getenv("GOOGLE_API_KEY")
        or ""
    )
    return Settings(
        gemini_api_key=gemini_key.strip(),
        groq_api_key=os.getenv("GROQ_API_KEY", "").strip(),
        provider=_provider(),
        analysis_model=os.getenv("ANALYSIS_MODEL", Settings.analysis_model),
        groq_vision_model=os.getenv("GROQ_VISION_MODEL", Settings.groq_vision_model),
        image_model=os.getenv("IMAGE_MODEL", Settings.image_model),
        pro_image_model=os.getenv("PRO_IMAGE_MODEL", Settings.pro_image_model),
        image_policy=os.getenv("IMAGE_POLICY", "labels").lower(),
        max_image_width=_int("MAX_IMAGE_WIDTH", Settings.max_image_width),
        sample_image_width=_int("SAMPLE_IMAGE_WIDTH", Settings.sample_image_width),
        jpeg_quality=_float("JPEG_QUALITY", Settings.jpeg_quality),
        allow_webp=_flag("ALLOW_WEBP", "True"),
        profile_path=os.getenv("PROFILE_PATH", Settings.profile_path),
        theme=os.getenv("UI_THEME", "clinical").lower(),
        copy_feedback_seconds=_float("COPY_FEEDBACK_SECONDS", Settings.copy_feedback_seconds),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    global _logging_configured
    if not _logging_configured:
        logging.basicConfig(level=level, format=LOG_FORMAT)
        _logging_configured = True
    else:
        logging.getLogger().setLevel(level)
