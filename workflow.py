import logging
from enum import Enum
from typing import Callable, Optional

from comparison_engine import analyze_products
from config import Settings
from errors import AnalysisFailure, AnalysisInProgress, CredentialError, GenerationFailed
from image_engine import generate_marketing_image
from profile_store import ProfileStore, validate_api_key
from schemas import (
    ComparisonResult, EncodedImage, GeneratedImage, ImageSize, ProductInput, ProductRole, UserProfile,
)

logger = logging.getLogger(__name__)

IMAGE_SLOTS = ("front_image", "label_image")

# The wizard: profile gate -> inputs -> processing -> results.
# Every failure lands on a specific earlier screen; product inputs are never
# thrown away by an error, only by an explicit reset.


class Phase(str, Enum):
    ONBOARDING = "ONBOARDING"
    INPUT = "INPUT"
    PROCESSING = "PROCESSING"
    RESULTS = "RESULTS"


class ComparisonSession:
    def __init__(
        self,
        profile_store: ProfileStore,
        settings: Settings,
        analyzer: Optional[Callable] = None,
        image_generator: Optional[Callable] = None,
    ):
        self.profile_store = profile_store
        self.settings = settings
        self.analyzer = analyzer
        self.image_generator = image_generator or generate_marketing_image

        self.phase = Phase.ONBOARDING
        self.profile: Optional[UserProfile] = None
        self.home: Optional[ProductInput] = None
        self.competitor: Optional[ProductInput] = None
        self.result: Optional[ComparisonResult] = None
        self.error: Optional[str] = None

        self.generated_image: Optional[GeneratedImage] = None
        self.generation_error: Optional[str] = None
        self.generation_needs_key = False

        self._busy = False

    # --- state ---

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def winner(self):
        return self.result.winner if self.result else None

    def start(self) -> Phase:
        """Read the stored profile once and pick the opening screen."""
        self.profile = self.profile_store.load()
        self.phase = Phase.INPUT if self.profile else Phase.ONBOARDING
        return self.phase

    # --- profile ---

    def save_profile(self, profile: UserProfile) -> Optional[str]:
        """Persist the profile and move on. Returns a message instead if the key looks wrong."""
        problem = validate_api_key(profile.api_key, self.settings.provider)
        if problem:
            return problem
        try:
            self.profile_store.save(profile)
        except OSError as e:
            # Unwritable store: keep the profile for this session only.
            logger.warning("Profile save failed, keeping it in memory: %s", e)
        self.profile = profile
        self.error = None
        self.phase = Phase.INPUT
        return None

    def open_profile(self) -> None:
        if not self._busy:
            self.phase = Phase.ONBOARDING

    @property
    def needs_key(self) -> bool:
        """True when neither the stored profile nor the environment supplies a credential."""
        env_key = self.settings.default_api_key()
        if self.profile_store.is_configured(env_key):
            return False
        return not (self.profile and self.profile.name and (self.profile.api_key or env_key))

    def logout(self) -> None:
        try:
            self.profile_store.clear()
        except OSError as e:
            logger.warning("Profile clear failed: %s", e)
        self.profile = None
        self._discard_results()
        self.home = None
        self.competitor = None
        self.error = None
        self.phase = Phase.ONBOARDING

    # --- analysis ---

    def set_draft(self, home: Optional[ProductInput], competitor: Optional[ProductInput]) -> None:
        """Remember form inputs (e.g. a loaded sample pair) without submitting them."""
        self.home = home
        self.competitor = competitor

    def set_image(self, role: ProductRole, slot: str, image: Optional[EncodedImage]) -> None:
        """Put a pasted image into one draft slot, or clear it with None."""
        if slot not in IMAGE_SLOTS:
            raise ValueError(f"Unknown image slot: {slot}")
        current = self.home if role == ProductRole.HOME else self.competitor
        draft = current or ProductInput(name="", role=role)
        draft = draft.model_copy(update={slot: image})
        if role == ProductRole.HOME:
            self.home = draft
        else:
            self.competitor = draft

    def submit(self, home: ProductInput, competitor: ProductInput) -> Phase:
        if self._busy:
            raise AnalysisInProgress()

        home = home.model_copy(update={"role": ProductRole.HOME})
        competitor = competitor.model_copy(update={"role": ProductRole.COMPETITOR})
        self.home, self.competitor = home, competitor

        if self.profile is None:
            self.phase = Phase.ONBOARDING
            return self.phase
        if not home.name.strip() or not competitor.name.strip():
            self.error = "Please enter product names."
            self.phase = Phase.INPUT
            return self.phase

        self._discard_results()
        self.error = None
        self.phase = Phase.PROCESSING
        self._busy = True
        try:
            result = analyze_products(home, competitor, self.profile, self.settings, analyzer=self.analyzer)
        except CredentialError as e:
            logger.warning("Analysis blocked by credentials: %s", e)
            self.error = e.user_message
            self.phase = Phase.ONBOARDING
        except AnalysisFailure as e:
            self.error = e.user_message
            self.phase = Phase.INPUT
        else:
            self.result = result
            self.phase = Phase.RESULTS
        finally:
            self._busy = False
        return self.phase

    def reset(self) -> None:
        """New comparison: drop the result and the inputs."""
        self._discard_results()
        self.home = None
        self.competitor = None
        self.error = None
        self.phase = Phase.INPUT

    # --- marketing image ---

    def generate_image(self, size: ImageSize) -> Optional[GeneratedImage]:
        """Failures stay on the generation panel; the results view is left alone."""
        if self.phase != Phase.RESULTS or self.result is None:
            return None
        self.generation_error = None
        self.generation_needs_key = False
        try:
            self.generated_image = self.image_generator(
                self.home, self.competitor, self.profile, size, self.result.winner,
                settings=self.settings,
            )
        except CredentialError as e:
            self.generation_needs_key = True
            self.generation_error = e.user_message
        except GenerationFailed as e:
            self.generation_error = e.user_message
        return self.generated_image

    def _discard_results(self) -> None:
        self.result = None
        self.generated_image = None
        self.generation_error = None
        self.generation_needs_key = False
