import math

import pytest

from drillcore.constants import DEFAULT_PARAMETERS
from drillcore.memory_model import FSRSMemoryModel
from drillcore.models import Rating


@pytest.fixture
def model() -> FSRSMemoryModel:
    return FSRSMemoryModel()


def test_rejects_wrong_weight_count():
    with pytest.raises(ValueError, match="Expected 17 FSRS weights"):
        FSRSMemoryModel(parameters=DEFAULT_PARAMETERS[:16])


@pytest.mark.parametrize(
    "rating, expected",
    [
        (Rating.Again, 0.4),
        (Rating.Hard, 0.6),
        (Rating.Good, 2.4),
        (Rating.Easy, 5.8),
    ],
)
def test_init_stability_uses_first_four_weights(model, rating, expected):
    assert model.init_stability(rating) == pytest.approx(expected)


def test_init_difficulty(model):
    assert model.init_difficulty(Rating.Good) == pytest.approx(4.93)
    assert model.init_difficulty(Rating.Easy) == pytest.approx(3.99)
    assert model.init_difficulty(Rating.Again) == pytest.approx(6.81)


def test_init_difficulty_is_clamped():
    weights = list(DEFAULT_PARAMETERS)
    weights[4] = 9.5
    weights[5] = 3.0
    model = FSRSMemoryModel(parameters=weights)
    assert model.init_difficulty(Rating.Again) == 10.0
    assert model.init_difficulty(Rating.Easy) == pytest.approx(6.5)

    weights[4] = 1.2
    model = FSRSMemoryModel(parameters=weights)
    assert model.init_difficulty(Rating.Easy) == 1.0


def test_retrievability(model):
    assert model.retrievability(0, 10.0) == 1.0
    assert model.retrievability(9.0, 1.0) == pytest.approx(0.5)
    assert model.retrievability(5.0, 0.0) == 0.0


def test_next_interval_rounds_half_up(model):
    # 9 * s * (1/0.9 - 1) == s
    assert model.next_interval(10.0) == 10
    assert model.next_interval(2.5) == 3
    assert model.next_interval(2.4) == 2
    assert model.next_interval(0.0) == 1


def test_next_interval_with_explicit_retention(model):
    # 9 * 10 * (1/0.8 - 1) == 22.5
    assert model.next_interval(10.0, retention=0.8) == 23


def test_next_review_stability_matches_formula(model):
    d, s, r = 5.0, 10.0, 0.9
    w = DEFAULT_PARAMETERS
    base = (
        math.exp(w[8])
        * (11 - d)
        * math.pow(s, -w[9])
        * (math.exp(w[10] * (1 - r)) - 1)
    )
    assert model.next_review_stability(d, s, r, Rating.Good) == pytest.approx(
        s * (base + 1)
    )
    assert model.next_review_stability(d, s, r, Rating.Hard) == pytest.approx(
        s * (base * w[15] + 1)
    )
    assert model.next_review_stability(d, s, r, Rating.Easy) == pytest.approx(
        s * (base * w[16] + 1)
    )


def test_successful_review_grows_stability(model):
    s = 10.0
    r = model.retrievability(10.0, s)
    hard = model.next_review_stability(5.0, s, r, Rating.Hard)
    good = model.next_review_stability(5.0, s, r, Rating.Good)
    easy = model.next_review_stability(5.0, s, r, Rating.Easy)
    assert s < hard < good < easy


def test_forget_stability_drops_below_current(model):
    s = 10.0
    r = model.retrievability(10.0, s)
    new_s = model.next_forget_stability(5.0, s, r)
    assert 0 < new_s < s
    w = DEFAULT_PARAMETERS
    expected = (
        w[11]
        * math.pow(5.0, -w[12])
        * (math.pow(s + 1, w[13]) - 1)
        * math.exp(w[14] * (1 - r))
    )
    assert new_s == pytest.approx(expected)


def test_next_difficulty_moves_with_rating(model):
    d = 5.0
    assert model.next_difficulty(d, Rating.Again) > d
    assert model.next_difficulty(d, Rating.Easy) < d
    # Good only mean-reverts toward init_difficulty(Good).
    expected = 0.01 * 4.93 + 0.99 * d
    assert model.next_difficulty(d, Rating.Good) == pytest.approx(expected)


def test_next_difficulty_is_clamped(model):
    assert model.next_difficulty(10.0, Rating.Again) == 10.0
    assert model.next_difficulty(1.0, Rating.Easy) == 1.0


def test_identical_inputs_give_identical_outputs(model):
    other = FSRSMemoryModel()
    args = (6.2, 13.7, 0.83, Rating.Good)
    assert model.next_review_stability(*args) == other.next_review_stability(
        *args
    )
