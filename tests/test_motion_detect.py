import logging

from camstages.motion_detect import MotionDetectConfig, MotionDetectStage
from camstages.stage import CompletedRequest, StreamInfo, StreamSet, create_stage

WIDTH, HEIGHT = 16, 8
BUFFER_SIZE = WIDTH * HEIGHT * 3 // 2


def frame(value=50):
    return bytearray([value] * BUFFER_SIZE)


def make_stage(**params):
    stage = MotionDetectStage()
    settings = {"region_threshold": 0.1, "frame_period": 0}
    settings.update(params)
    stage.read(settings)
    stage.configure(StreamSet(lores=StreamInfo(WIDTH, HEIGHT, WIDTH)))
    return stage


def run(stage, buffer, sequence=0):
    request = CompletedRequest(sequence=sequence, buffers={"lores": buffer})
    assert stage.process(request) is False
    return request.post_process_metadata


def test_read_defaults_match_config_defaults():
    stage = MotionDetectStage()
    stage.read({})
    assert stage.config == MotionDetectConfig()
    assert stage.config.frame_period == 5
    assert stage.config.difference_c == 10


def test_read_overrides():
    stage = MotionDetectStage()
    stage.read({"hskip": 2, "verbose": 1, "roi_x": 0.25})
    assert stage.config.hskip == 2
    assert stage.config.verbose is True
    assert stage.config.roi_x == 0.25


def test_registered():
    stage = create_stage("motion_detect")
    assert isinstance(stage, MotionDetectStage)
    assert stage.name() == "motion_detect"


def test_without_lores_does_nothing():
    stage = MotionDetectStage()
    stage.configure(StreamSet(main=StreamInfo(WIDTH, HEIGHT, WIDTH)))
    request = CompletedRequest(buffers={"lores": frame()})
    assert stage.process(request) is False
    assert request.post_process_metadata == {}


def test_first_frame_reports_no_motion():
    stage = make_stage()
    assert run(stage, frame())["motion_detect.result"] is False


def test_identical_frames_no_motion():
    stage = make_stage()
    run(stage, frame())
    assert run(stage, frame())["motion_detect.result"] is False


def test_small_difference_ignored():
    stage = make_stage()
    run(stage, frame(50))
    assert run(stage, frame(60))["motion_detect.result"] is False


def test_large_change_detected_then_stops():
    stage = make_stage()
    run(stage, frame(50))
    assert run(stage, frame(200))["motion_detect.result"] is True
    assert run(stage, frame(200))["motion_detect.result"] is False


def test_frame_period_skips_frames():
    stage = make_stage(frame_period=5)
    assert run(stage, frame(), sequence=1) == {}
    assert run(stage, frame(), sequence=5)["motion_detect.result"] is False


def test_changes_outside_roi_ignored():
    stage = make_stage(roi_x=0.5, roi_width=0.5)
    run(stage, frame(50))
    changed = frame(50)
    for y in range(HEIGHT):
        changed[y * WIDTH : y * WIDTH + WIDTH // 2] = bytes([250] * (WIDTH // 2))
    assert run(stage, changed)["motion_detect.result"] is False
    inside = frame(50)
    for y in range(HEIGHT):
        inside[y * WIDTH + WIDTH // 2 : (y + 1) * WIDTH] = bytes([250] * (WIDTH // 2))
    run(stage, frame(50))
    assert run(stage, inside)["motion_detect.result"] is True


def test_skipped_pixels_ignored():
    stage = make_stage(hskip=2)
    run(stage, frame(50))
    changed = frame(50)
    for y in range(HEIGHT):
        for x in range(1, WIDTH, 2):
            changed[y * WIDTH + x] = 250
    assert run(stage, changed)["motion_detect.result"] is False


def test_verbose_logs_transitions(caplog):
    caplog.set_level(logging.INFO, logger="camstages.motion_detect")
    stage = make_stage(verbose=1)
    run(stage, frame(50))
    run(stage, frame(200))
    run(stage, frame(200))
    messages = [r.getMessage() for r in caplog.records]
    assert "Motion detected" in messages
    assert "Motion stopped" in messages