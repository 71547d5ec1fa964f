import pytest

from stairvision.core.alerts.narration import (
    CLEAR_IDLE,
    HAZARD_TEMPLATES,
    NO_HISTORY,
    FirstPhraseSelector,
    NarrationEngine,
    RoundRobinSelector,
    SeededRandomSelector,
    make_selector,
    numeric_distance,
)
from stairvision.core.types import Detection, DistanceBucket, ObstacleEvent, StairType, Urgency


def _det(distance, stair_type=StairType.ASCENDING):
    return Detection(x=0.5, y=0.5, w=0.3, h=0.3, confidence=0.9, stair_type=stair_type, distance=distance)


@pytest.mark.parametrize(
    ("distance", "text", "urgency"),
    [
        (DistanceBucket.VERY_CLOSE, "Stop! ascending stairs immediately ahead!", Urgency.URGENT),
        (
            DistanceBucket.CLOSE,
            "Caution! ascending stairs 1 to 2 meters ahead, proceed carefully.",
            Urgency.WARNING,
        ),
        (DistanceBucket.MEDIUM, "Ascending stairs detected 2 to 4 meters ahead.", Urgency.NOTICE),
        (DistanceBucket.FAR, "Ascending stairs detected far ahead.", Urgency.NOTICE),
    ],
)
def test_hazard_phrase_escalates_with_distance(distance, text, urgency):
    phrase = NarrationEngine().hazard_phrase(_det(distance))
    assert phrase.text == text
    assert phrase.urgency is urgency


def test_numeric_distance_wording():
    engine = NarrationEngine(numeric=True)
    assert engine.hazard_phrase(_det(DistanceBucket.MEDIUM)).text == (
        "Ascending stairs detected 3 meters ahead."
    )
    assert numeric_distance(0.5) == "less than 1 meter ahead"
    assert numeric_distance(1.5) == "1 meter ahead"
    assert numeric_distance(5.0) == "5 meters ahead"


def test_clear_phrase_depends_on_recent_hazard():
    engine = NarrationEngine()
    assert engine.clear_phrase(3.0).text == "Path clear, continue forward."
    assert engine.clear_phrase(30.0).text == "Scanning for obstacles, path clear."
    assert engine.clear_phrase(None).text == "Scanning for obstacles, path clear."
    assert engine.clear_phrase().urgency is Urgency.NONE


def test_phrase_for_dispatches_on_primary():
    engine = NarrationEngine()
    assert engine.phrase_for(None).urgency is Urgency.NONE
    assert engine.phrase_for(_det(DistanceBucket.CLOSE)).urgency is Urgency.WARNING


def test_round_robin_cycles_per_family():
    engine = NarrationEngine(RoundRobinSelector())
    texts = [engine.clear_phrase().text for _ in range(len(CLEAR_IDLE) + 1)]
    assert texts[: len(CLEAR_IDLE)] == list(CLEAR_IDLE)
    assert texts[-1] == CLEAR_IDLE[0]
    # Independent counter for hazard templates.
    first = engine.hazard_phrase(_det(DistanceBucket.VERY_CLOSE)).text
    assert first == "Stop! ascending stairs immediately ahead!"


def test_seeded_random_is_reproducible():
    a = NarrationEngine(SeededRandomSelector(42))
    b = NarrationEngine(SeededRandomSelector(42))
    seq_a = [a.hazard_phrase(_det(DistanceBucket.VERY_CLOSE)).text for _ in range(10)]
    seq_b = [b.hazard_phrase(_det(DistanceBucket.VERY_CLOSE)).text for _ in range(10)]
    assert seq_a == seq_b
    urgent = {
        t.format(prefix="Stop! ", stair="ascending stairs", distance="immediately ahead")
        for t in HAZARD_TEMPLATES[Urgency.URGENT]
    }
    assert set(seq_a) <= urgent


def test_make_selector():
    assert isinstance(make_selector("first"), FirstPhraseSelector)
    assert isinstance(make_selector("round_robin"), RoundRobinSelector)
    assert isinstance(make_selector("random", 1), SeededRandomSelector)
    with pytest.raises(ValueError):
        make_selector("loud")


def test_replay_phrase():
    engine = NarrationEngine()
    assert engine.replay_phrase(None, now=10.0).text == NO_HISTORY
    event = ObstacleEvent(
        timestamp=4.0, stair_type=StairType.DESCENDING, distance_meters=1.5, confidence=0.9
    )
    assert engine.replay_phrase(event, now=10.0).text == (
        "Last detection: descending stairs, 1 meters, 6 seconds ago."
    )
