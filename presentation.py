"""
View helpers for the results dashboard.

Everything here is pure (no Streamlit imports) so the same rows, texts and
styles feed whichever theme the UI is rendering in.
"""
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from schemas import Advantage, ComparisonResult, Winner, resolve_winner

__all__ = [
    "resolve_winner", "ScoreBar", "score_bars", "nutrient_table", "PLATFORM_LABELS",
    "nutrient_breakdown_text", "pros_cons_text", "caption_text",
    "CopyFeedback", "Theme", "ThemeStyle", "theme_style", "theme_css",
]

ADVANTAGE_MARKERS = {
    Advantage.HOME: "✅ Home",
    Advantage.COMPETITOR: "⚠️ Competitor",
    Advantage.NEUTRAL: "➖ Even",
}

PLATFORM_LABELS = {
    "facebook": "Facebook",
    "linkedin": "LinkedIn",
    "twitter": "X / Twitter",
    "youtube": "YouTube",
    "tiktok": "TikTok",
}


# ==================== SCORES & TABLES ====================

@dataclass(frozen=True)
class ScoreBar:
    label: str
    score: float
    fraction: float
    is_winner: bool


def _fraction(score: float) -> float:
    return max(0.0, min(1.0, score / 100.0))


def score_bars(result: ComparisonResult, home_name: str, competitor_name: str) -> List[ScoreBar]:
    winner = result.winner
    return [
        ScoreBar(home_name, result.score_home, _fraction(result.score_home), winner == Winner.HOME),
        ScoreBar(competitor_name, result.score_competitor, _fraction(result.score_competitor), winner == Winner.COMPETITOR),
    ]


def nutrient_table(result: ComparisonResult, home_name: str = "Home", competitor_name: str = "Competitor") -> List[Dict[str, str]]:
    return [
        {
            "Nutrient": row.nutrient,
            home_name: row.home_value,
            competitor_name: row.competitor_value,
            "Advantage": ADVANTAGE_MARKERS[row.advantage],
        }
        for row in result.nutrient_comparison
    ]


def nutrient_breakdown_text(result: ComparisonResult, home_name: str, competitor_name: str) -> str:
    lines = [
        f"{row.nutrient}: {home_name}({row.home_value}) vs {competitor_name}({row.competitor_value})"
        for row in result.nutrient_comparison
    ]
    return "Nutrient Breakdown:\n" + "\n".join(lines)


def pros_cons_text(result: ComparisonResult) -> str:
    pros = "\n".join(f"+ {p}" for p in result.pros)
    cons = "\n".join(f"- {c}" for c in result.cons)
    return f"Strengths:\n{pros}\n\nWatch-outs:\n{cons}"


def caption_text(result: ComparisonResult, platform: str) -> str:
    return getattr(result.social_copy, platform)


# ==================== COPY FEEDBACK ====================

class CopyFeedback:
    """
    Transient "Copied!" indicators, one per copyable block.

    Each mark expires on its own after `duration` seconds. Nothing is persisted;
    `release()` (or leaving the `with` block) drops every pending indicator when
    the owning view goes away.
    """

    def __init__(self, duration: float = 2.0, clock: Callable[[], float] = time.monotonic):
        self.duration = duration
        self.clock = clock
        self._deadlines: Dict[str, float] = {}
        self._released = False

    def mark(self, block: str) -> None:
        if self._released:
            return
        self._deadlines[block] = self.clock() + self.duration

    def is_active(self, block: str) -> bool:
        deadline = self._deadlines.get(block)
        if deadline is None:
            return False
        if self.clock() >= deadline:
            del self._deadlines[block]
            return False
        return True

    def cancel(self, block: Optional[str] = None) -> None:
        if block is None:
            self._deadlines.clear()
        else:
            self._deadlines.pop(block, None)

    def release(self) -> None:
        self.cancel()
        self._released = True

    def __enter__(self) -> "CopyFeedback":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


# ==================== THEMES ====================

class Theme(str, Enum):
    CLINICAL = "clinical"  # white lab coat, teal + rose
    NOIR = "noir"          # dark glass, gold accents

    @classmethod
    def parse(cls, value: str) -> "Theme":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.CLINICAL


@dataclass(frozen=True)
class ThemeStyle:
    background: str
    text: str
    card: str
    border: str
    home: str
    competitor: str
    accent: str
    heading_font: str


THEME_STYLES = {
    Theme.CLINICAL: ThemeStyle(
        background="#f8fafc", text="#1e293b", card="#ffffff", border="#e2e8f0",
        home="#0d9488", competitor="#e11d48", accent="#14b8a6",
        heading_font="'Inter', sans-serif",
    ),
    Theme.NOIR: ThemeStyle(
        background="#0b0b0f", text="#e5e7eb", card="rgba(255,255,255,0.05)", border="rgba(255,255,255,0.1)",
        home="#FFD700", competitor="#4B5563", accent="#FFD700",
        heading_font="'Courier New', monospace",
    ),
}


def theme_style(theme) -> ThemeStyle:
    if not isinstance(theme, Theme):
        theme = Theme.parse(theme)
    return THEME_STYLES[theme]


def theme_css(theme) -> str:
    s = theme_style(theme)
    return f"""
<style>
    .stApp {{ background-color: {s.background}; color: {s.text}; }}
    h1, h2, h3 {{ color: {s.accent} !important; font-family: {s.heading_font}; }}
    #MainMenu {{ visibility: hidden; }}
    footer {{ visibility: hidden; }}

    .tape-card {{
        background: {s.card};
        border: 1px solid {s.border};
        border-radius: 12px;
        padding: 16px 20px;
        margin-bottom: 16px;
    }}
    .tape-home {{ color: {s.home}; font-weight: bold; }}
    .tape-competitor {{ color: {s.competitor}; font-weight: bold; }}
    .tape-winner {{
        border: 2px solid {s.accent};
        border-radius: 999px;
        padding: 4px 14px;
        font-weight: bold;
        display: inline-block;
    }}
    .stProgress > div > div > div > div {{ background-color: {s.accent}; }}
</style>
"""
