from stairvision.core.detectors.demo import DEMO_CONFIDENCE, DemoDetector
from stairvision.core.types import DistanceBucket, StairType


def test_first_frames_are_far_descending():
    demo = DemoDetector()
    det = demo.next()[0]

    assert det.distance is DistanceBucket.FAR
    assert det.stair_type is StairType.DESCENDING
    assert det.confidence == DEMO_CONFIDENCE


def test_distance_cycles_every_50_frames():
    demo = DemoDetector()
    seen = []
    for _ in range(200):
        seen.append(demo.next()[0].distance)

    assert seen[48] is DistanceBucket.FAR
    assert seen[49] is DistanceBucket.MEDIUM
    assert seen[99] is DistanceBucket.CLOSE
    assert seen[149] is DistanceBucket.VERY_CLOSE
    assert seen[199] is DistanceBucket.FAR


def test_type_rotates_every_100_frames():
    demo = DemoDetector()
    types = [demo.next()[0].stair_type for _ in range(300)]

    assert types[98] is StairType.DESCENDING
    assert types[99] is StairType.ASCENDING
    assert types[199] is StairType.SIDE_VIEW
    assert types[299] is StairType.DESCENDING
