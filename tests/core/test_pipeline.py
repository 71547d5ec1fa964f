import numpy as np
import pytest

from stairvision.core.alerts.arbiter import AlertArbiter
from stairvision.core.alerts.feedback import HAPTIC_PATTERNS, LATERAL_PATTERN, FeedbackMediator
from stairvision.core.alerts.narration import NarrationEngine
from stairvision.core.analytics.aggregator import DetectionSmoother
from stairvision.core.config.settings import StairVisionSettings
from stairvision.core.detectors.demo import DemoDetector
from stairvision.core.pipeline import StairPipeline, pipeline_from_settings
from stairvision.core.types import DecodeResult, Detection, DistanceBucket, StairType, Urgency


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


class FakeSpeech:
    def __init__(self):
        self.spoken = []
        self.stopped = 0

    def speak(self, text, flush_previous=True):
        self.spoken.append(text)

    def stop(self):
        self.stopped += 1


class FakeHaptics:
    def __init__(self):
        self.patterns = []

    def vibrate(self, pattern, intensities):
        self.patterns.append(tuple(pattern))

    def cancel(self):
        pass


class FakeTones:
    def play_tone(self, frequency_hz, duration_ms):
        pass


class ScriptedDetector:
    """Returns queued detection lists; empty once the script runs out."""

    def __init__(self, *frames):
        self.frames = list(frames)
        self.detect_calls = 0
        self.decoded = []

    def detect(self, frame):
        self.detect_calls += 1
        dets = self.frames.pop(0) if self.frames else []
        return DecodeResult(detections=dets, max_confidence=max((d.confidence for d in dets), default=0.0))

    def decode(self, raw):
        self.decoded.append(raw)
        return DecodeResult(detections=[STAIRS])


class FakeCloud:
    def __init__(self):
        self.requests = []
        self.closed = False

    def request(self, frame, detections, force=False):
        self.requests.append((frame, list(detections), force))
        return object()

    def close(self):
        self.closed = True


STAIRS = Detection(
    x=0.5, y=0.6, w=0.4, h=0.35, confidence=0.9, stair_type=StairType.DESCENDING,
    distance=DistanceBucket.CLOSE,
)
OFF_LEFT = Detection(
    x=0.2, y=0.6, w=0.4, h=0.35, confidence=0.8, stair_type=StairType.DESCENDING,
    distance=DistanceBucket.CLOSE,
)
FRAME = np.zeros((48, 64, 3), dtype=np.uint8)


def _pipeline(detector, clock, pulse_interval=0.5, **kwargs):
    speech = FakeSpeech()
    mediator = FeedbackMediator(
        speech,
        FakeHaptics(),
        FakeTones(),
        AlertArbiter(2.0, 7.0),
        NarrationEngine(),
        clock=clock,
        min_pulse_interval_s=pulse_interval,
    )
    return StairPipeline(detector, mediator, clock=clock, **kwargs), speech


def test_hazard_is_announced_and_remembered():
    clock = FakeClock(10.0)
    pipeline, speech = _pipeline(ScriptedDetector([STAIRS]), clock)

    report = pipeline.process(FRAME)

    assert report.hazard is True and report.confirmed is True
    assert report.primary == STAIRS
    assert report.announcement.text == "Caution! descending stairs 1 to 2 meters ahead, proceed carefully."
    assert speech.spoken == [report.announcement.text]
    assert pipeline.history.latest().timestamp == 10.0
    assert pipeline.mediator.haptics.patterns


def test_hazard_then_eight_seconds_of_clear_frames():
    clock = FakeClock()
    pipeline, speech = _pipeline(ScriptedDetector([STAIRS]), clock)
    pipeline.process(FRAME)

    announced = {}
    for t in range(1, 9):
        clock.t = float(t)
        report = pipeline.process(FRAME)
        if report.announcement is not None:
            announced[t] = report.announcement.text

    assert announced == {
        1: "Path clear, continue forward.",
        8: "Path clear, continue forward.",
    }
    assert len(speech.spoken) == 3


def test_continuous_narrator_off_keeps_clear_frames_silent():
    clock = FakeClock()
    pipeline, speech = _pipeline(ScriptedDetector([STAIRS]), clock, continuous_narrator=False)
    for t in range(0, 10):
        clock.t = float(t)
        pipeline.process(FRAME)
    assert len(speech.spoken) == 1


def test_hazard_repeats_after_interval():
    clock = FakeClock()
    pipeline, speech = _pipeline(ScriptedDetector(*([[STAIRS]] * 5)), clock)
    for t in (0.0, 0.5, 1.0, 2.0, 2.5):
        clock.t = t
        pipeline.process(FRAME)
    assert len(speech.spoken) == 2


def test_lateral_and_distance_cues_share_the_motor():
    clock = FakeClock()
    pipeline, _ = _pipeline(ScriptedDetector(*([[OFF_LEFT]] * 5)), clock)
    for t in (0.0, 0.25, 0.5, 1.0, 1.5):
        clock.t = t
        pipeline.process(FRAME)

    distance = HAPTIC_PATTERNS[DistanceBucket.CLOSE][0]
    lateral = LATERAL_PATTERN[0]
    # One waveform per 500 ms, alternating between the two cues.
    assert pipeline.mediator.haptics.patterns == [distance, lateral, distance, lateral]


def test_without_lateral_guidance_only_distance_pulses():
    clock = FakeClock()
    pipeline, _ = _pipeline(ScriptedDetector(*([[OFF_LEFT]] * 4)), clock, lateral=False)
    for t in (0.0, 0.25, 0.5, 1.0):
        clock.t = t
        pipeline.process(FRAME)

    assert pipeline.mediator.haptics.patterns == [HAPTIC_PATTERNS[DistanceBucket.CLOSE][0]] * 3


def test_unconfirmed_stairs_never_announce_path_clear():
    clock = FakeClock()
    smoother = DetectionSmoother(window=5, min_hits=2)
    pipeline, speech = _pipeline(ScriptedDetector([], [STAIRS], [STAIRS]), clock, smoother=smoother)

    pipeline.process(FRAME)
    clock.t = 8.0
    pending = pipeline.process(FRAME)
    clock.t = 8.1
    confirmed = pipeline.process(FRAME)

    assert pending.primary == STAIRS and pending.confirmed is False
    assert pending.announcement is None
    assert confirmed.announcement.urgency is Urgency.WARNING
    assert speech.spoken == [
        "Scanning for obstacles, path clear.",
        "Caution! descending stairs 1 to 2 meters ahead, proceed carefully.",
    ]


def test_smoothing_confirms_and_holds_primary():
    clock = FakeClock()
    smoother = DetectionSmoother(window=5, min_hits=2)
    pipeline, speech = _pipeline(
        ScriptedDetector([STAIRS], [STAIRS], []), clock, smoother=smoother, continuous_narrator=False
    )

    first = pipeline.process(FRAME)
    clock.t = 0.1
    second = pipeline.process(FRAME)
    clock.t = 0.2
    third = pipeline.process(FRAME)

    assert (first.hazard, first.confirmed) == (True, False)
    assert (second.hazard, second.confirmed) == (True, True)
    assert second.announcement is not None
    # Empty frame, but the smoothed hazard is still confirmed.
    assert (third.hazard, third.confirmed) == (False, True)
    assert third.primary is None
    assert len(speech.spoken) == 1


def test_pause_and_resume():
    clock = FakeClock()
    detector = ScriptedDetector([STAIRS], [STAIRS])
    pipeline, speech = _pipeline(detector, clock)

    pipeline.pause()
    report = pipeline.process(FRAME)
    assert report.paused is True
    assert report.detections == []
    assert detector.detect_calls == 0
    assert speech.stopped == 1

    pipeline.resume()
    report = pipeline.process(FRAME)
    assert report.paused is False
    assert report.announcement is not None


def test_replay_last():
    clock = FakeClock()
    pipeline, speech = _pipeline(ScriptedDetector([STAIRS]), clock)
    assert pipeline.replay_last().text == "No recent obstacles detected."

    pipeline.process(FRAME)
    clock.t = 4.0
    phrase = pipeline.replay_last()
    assert phrase.text == "Last detection: descending stairs, 1 meters, 4 seconds ago."
    assert speech.spoken[-1] == phrase.text


def test_demo_detections_fill_empty_frames():
    pipeline, _ = _pipeline(ScriptedDetector(), FakeClock(), demo=DemoDetector())
    report = pipeline.process(FRAME)
    assert len(report.detections) == 1
    assert report.primary.distance is DistanceBucket.FAR


def test_cloud_request_only_with_detections():
    cloud = FakeCloud()
    pipeline, _ = _pipeline(ScriptedDetector([STAIRS], []), FakeClock(), cloud=cloud)

    assert pipeline.process(FRAME).cloud_requested is True
    assert pipeline.process(FRAME).cloud_requested is False
    assert len(cloud.requests) == 1

    assert pipeline.request_analysis(FRAME) is True
    assert cloud.requests[-1][2] is True

    pipeline.close()
    assert cloud.closed is True
    assert pipeline.mediator.closed is True


def test_process_tensor_skips_inference():
    detector = ScriptedDetector()
    pipeline, _ = _pipeline(detector, FakeClock())
    raw = np.zeros((5, 10), dtype=np.float32)

    report = pipeline.process_tensor(raw)

    assert detector.detect_calls == 0
    assert detector.decoded[0] is raw
    assert report.primary == STAIRS


def test_profile_timings():
    pipeline, _ = _pipeline(ScriptedDetector([STAIRS]), FakeClock())
    report = pipeline.process_with_profile(FRAME)
    assert set(report.profile) == {"detect_ms", "alert_ms", "pipeline_ms"}
    assert report.frame_id == 1


class _FakeVisionModel:
    def generate(self, image_jpeg, prompt):
        return "ok"


def test_pipeline_from_settings_wires_collaborators(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    settings = StairVisionSettings(
        enable_audio=False,
        cloud_enabled=True,
        smoothing_enabled=True,
        smoothing_window=4,
        smoothing_min_hits=3,
        demo_mode=True,
        hazard_interval_ms=1500,
        history_size=3,
        continuous_narrator=False,
    )
    pipeline = pipeline_from_settings(
        settings, detector=ScriptedDetector(), speech=FakeSpeech(), vision_model=_FakeVisionModel()
    )
    try:
        assert pipeline.cloud is not None
        assert pipeline.smoother.window == 4 and pipeline.smoother.min_hits == 3
        assert pipeline.demo is not None
        assert pipeline.history.capacity == 3
        assert pipeline.mediator.arbiter.min_hazard_interval_s == pytest.approx(1.5)
        assert pipeline.mediator.audio_enabled is False
        assert pipeline.continuous_narrator is False
    finally:
        pipeline.close()


def test_pipeline_from_settings_without_api_key_disables_cloud(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    settings = StairVisionSettings(cloud_enabled=True, cloud_api_key=None)
    pipeline = pipeline_from_settings(settings, detector=ScriptedDetector(), speech=FakeSpeech())
    try:
        assert pipeline.cloud is None
    finally:
        pipeline.close()
