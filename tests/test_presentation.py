import pytest

from presentation import (
    CopyFeedback, Theme, caption_text, nutrient_breakdown_text, nutrient_table,
    pros_cons_text, resolve_winner, score_bars, theme_css, theme_style,
)
from schemas import ComparisonResult, Winner


@pytest.fixture
def result(result_payload):
    return ComparisonResult.model_validate(result_payload)


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


@pytest.mark.parametrize(
    "home, competitor, expected",
    [(72, 72, Winner.HOME), (73, 72, Winner.HOME), (71, 72, Winner.COMPETITOR), (0, 0, Winner.HOME)],
)
def test_ties_go_to_home(home, competitor, expected):
    assert resolve_winner(home, competitor) == expected


def test_result_winner_tracks_scores(result_payload):
    result_payload.update(scoreHome=72, scoreCompetitor=72)
    assert ComparisonResult.model_validate(result_payload).winner == Winner.HOME

    result_payload.update(scoreHome=40)
    assert ComparisonResult.model_validate(result_payload).winner == Winner.COMPETITOR


def test_score_bars_mark_winner_and_clamp(result_payload):
    result_payload.update(scoreHome=120, scoreCompetitor=-5)
    bars = score_bars(ComparisonResult.model_validate(result_payload), "Tangy", "Generic")

    assert [b.label for b in bars] == ["Tangy", "Generic"]
    assert [b.fraction for b in bars] == [1.0, 0.0]
    assert [b.is_winner for b in bars] == [True, False]


def test_nutrient_table_uses_product_names(result):
    rows = nutrient_table(result, "Tangy", "Generic")

    assert rows[0] == {
        "Nutrient": "Magnesium",
        "Tangy": "200mg (citrate)",
        "Generic": "250mg (oxide)",
        "Advantage": "✅ Home",
    }
    assert rows[1]["Advantage"] == "➖ Even"


def test_copy_texts(result):
    breakdown = nutrient_breakdown_text(result, "Tangy", "Generic")
    assert breakdown.splitlines()[1] == "Magnesium: Tangy(200mg (citrate)) vs Generic(250mg (oxide))"

    assert "+ Magnesium citrate" in pros_cons_text(result)
    assert "- Costs more per serving" in pros_cons_text(result)
    assert caption_text(result, "linkedin") == "LI post #a #b #c #d #e"


def test_copied_indicator_reverts_after_duration():
    clock = FakeClock()
    feedback = CopyFeedback(duration=2.0, clock=clock)

    feedback.mark("social-facebook")
    assert feedback.is_active("social-facebook")
    assert not feedback.is_active("verdict")

    clock.now += 1.9
    assert feedback.is_active("social-facebook")

    clock.now += 0.2
    assert not feedback.is_active("social-facebook")


def test_marking_again_restarts_the_indicator():
    clock = FakeClock()
    feedback = CopyFeedback(clock=clock)

    feedback.mark("verdict")
    clock.now += 1.5
    feedback.mark("verdict")
    clock.now += 1.5

    assert feedback.is_active("verdict")


def test_cancel_and_release():
    clock = FakeClock()
    with CopyFeedback(clock=clock) as feedback:
        feedback.mark("a")
        feedback.mark("b")
        feedback.cancel("a")
        assert not feedback.is_active("a")
        assert feedback.is_active("b")

    assert not feedback.is_active("b")
    feedback.mark("c")
    assert not feedback.is_active("c")


def test_themes_share_one_stylesheet():
    clinical = theme_css(Theme.CLINICAL)
    noir = theme_css("noir")

    assert theme_style("clinical").home in clinical
    assert theme_style(Theme.NOIR).accent in noir
    assert ".tape-card" in clinical and ".tape-card" in noir


def test_unknown_theme_falls_back_to_clinical():
    assert theme_style("neon") == theme_style(Theme.CLINICAL)
