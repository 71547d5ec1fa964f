import pytest

from stairvision.core.alerts.arbiter import AlertArbiter
from stairvision.core.alerts.feedback import (
    CLEAR_TONE,
    DISTANCE_TONES,
    HAPTIC_PATTERNS,
    LATERAL_PATTERN,
    FeedbackMediator,
)
from stairvision.core.alerts.narration import NarrationEngine
from stairvision.core.errors import OutputDeviceUnavailable
from stairvision.core.types import Detection, DistanceBucket, LateralDirection, StairType, Urgency


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


class FakeSpeech:
    def __init__(self, fail=False):
        self.fail = fail
        self.queue: list[str] = []
        self.spoken: list[str] = []
        self.stopped = 0
        self.shut = False

    def speak(self, text, flush_previous=True):
        if self.fail:
            raise OutputDeviceUnavailable("tts gone")
        if flush_previous:
            self.queue.clear()
        self.queue.append(text)
        self.spoken.append(text)

    def stop(self):
        self.stopped += 1
        self.queue.clear()

    def shutdown(self):
        self.shut = True


class FakeHaptics:
    def __init__(self):
        self.patterns = []
        self.cancelled = 0

    def vibrate(self, pattern, intensities):
        self.patterns.append((tuple(pattern), tuple(intensities)))

    def cancel(self):
        self.cancelled += 1


class FakeTones:
    def __init__(self):
        self.tones = []

    def play_tone(self, frequency_hz, duration_ms):
        self.tones.append((frequency_hz, duration_ms))


def _det(distance=DistanceBucket.CLOSE):
    return Detection(
        x=0.5, y=0.5, w=0.3, h=0.3, confidence=0.9, stair_type=StairType.DESCENDING, distance=distance
    )


def _mediator(speech=None, clock=None, **kwargs):
    return FeedbackMediator(
        speech if speech is not None else FakeSpeech(),
        FakeHaptics(),
        FakeTones(),
        AlertArbiter(2.0, 7.0),
        NarrationEngine(),
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_last_writer_wins():
    speech = FakeSpeech()
    mediator = _mediator(speech)
    mediator.speak("Caution! descending stairs 1 to 2 meters ahead, proceed carefully.")
    mediator.deliver("Cloud: the stairs have a handrail on the right.")

    assert speech.queue == ["Cloud: the stairs have a handrail on the right."]
    assert mediator.active_phrase == speech.queue[0]


def test_speech_failure_degrades_to_tones():
    mediator = _mediator(FakeSpeech(fail=True))
    assert mediator.speak("hello") is False
    assert mediator.tones.tones == [(600, 100)]
    assert mediator.status()["speech_available"] is False
    # Stays degraded without retrying the broken engine.
    mediator.announce(NarrationEngine().hazard_phrase(_det(DistanceBucket.VERY_CLOSE)), DistanceBucket.VERY_CLOSE)
    assert mediator.tones.tones[-1] == DISTANCE_TONES[DistanceBucket.VERY_CLOSE]


def test_no_speech_device_is_tone_only():
    mediator = FeedbackMediator(
        None, FakeHaptics(), FakeTones(), AlertArbiter(), NarrationEngine(), clock=FakeClock()
    )
    phrase = mediator.speak_if_due(False, None, now=0.0)
    assert phrase is not None
    assert mediator.tones.tones == [CLEAR_TONE]
    assert mediator.status()["speech_available"] is False


def test_speak_if_due_narrates_hazard_once_per_interval():
    speech = FakeSpeech()
    mediator = _mediator(speech)
    first = mediator.speak_if_due(True, _det(), now=0.0)
    second = mediator.speak_if_due(True, _det(), now=1.0)

    assert first is not None and first.urgency is Urgency.WARNING
    assert second is None
    assert speech.spoken == [first.text]


def test_clear_announcement_can_be_suppressed():
    speech = FakeSpeech()
    mediator = _mediator(speech)
    assert mediator.speak_if_due(False, None, now=0.0, announce_clear=False) is None
    assert speech.spoken == []
    # The arbiter still consumed the clear slot.
    assert mediator.arbiter.state.last_clear_at == 0.0


def test_haptic_motor_pulses_at_most_once_per_interval():
    clock = FakeClock(10.0)
    mediator = _mediator(clock=clock, min_pulse_interval_s=0.5)

    assert mediator.pulse_for_distance(DistanceBucket.CLOSE) is True
    # Same instant, same motor: the lateral cue has to wait.
    assert mediator.pulse_lateral(LateralDirection.RIGHT) is False
    clock.t = 10.3
    assert mediator.pulse_lateral(LateralDirection.RIGHT) is False
    assert mediator.pulse_for_distance(DistanceBucket.VERY_CLOSE) is False
    clock.t = 10.5
    assert mediator.pulse_lateral(LateralDirection.RIGHT) is True
    clock.t = 11.0
    assert mediator.pulse_for_distance(DistanceBucket.FAR) is True

    assert mediator.haptics.patterns == [
        HAPTIC_PATTERNS[DistanceBucket.CLOSE],
        LATERAL_PATTERN,
        HAPTIC_PATTERNS[DistanceBucket.FAR],
    ]


def test_disabled_channels_stay_silent():
    mediator = _mediator(audio_enabled=False, haptics_enabled=False)
    assert mediator.speak("hi") is False
    assert mediator.pulse_for_distance(DistanceBucket.CLOSE) is False
    assert mediator.speech.spoken == []
    assert mediator.tones.tones == []


def test_set_audio_enabled_stops_speech():
    mediator = _mediator()
    mediator.set_audio_enabled(False)
    assert mediator.speech.stopped == 1
    mediator.set_haptics_enabled(False)
    assert mediator.haptics.cancelled == 1


def test_close_drops_late_deliveries():
    speech = FakeSpeech()
    mediator = _mediator(speech)
    mediator.close()

    assert mediator.deliver("late cloud answer") is False
    assert speech.spoken == []
    assert speech.shut is True
    assert mediator.status()["closed"] is True


def test_cancel_all():
    mediator = _mediator()
    mediator.speak("something")
    mediator.cancel_all()
    assert mediator.active_phrase is None
    assert mediator.speech.stopped == 1
    assert mediator.haptics.cancelled == 1


@pytest.mark.parametrize("bucket", list(DistanceBucket))
def test_every_bucket_has_pattern_and_tone(bucket):
    timings, intensities = HAPTIC_PATTERNS[bucket]
    assert len(timings) == len(intensities)
    assert bucket in DISTANCE_TONES
