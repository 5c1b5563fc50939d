# camstages

Post-processing stages for camera frame pipelines, working on YUV420 frame
buffers held in memory, plus helpers that turn the raw outputs of detection,
pose and segmentation networks into results attached to a request.

## What is included

- `camstages.pwl`: piecewise linear functions (`Pwl`) with evaluation,
  composition (`compose`), combination (`combine`, `map2`), inversion
  (`invert`, returning a `PerpType`), domain matching and lookup-table
  generation (`generate_lut`). `Interval` and `Point` are the supporting
  value types.
- `camstages.stage`: the framework.
  - `StreamInfo`, `StreamSet`, `StreamConfiguration` and `CompletedRequest`
    describe streams and captured frames. A request holds its buffers under
    the names `"main"`, `"lores"` and `"still"`.
  - `PostProcessingStage` is the abstract base class: `name`, `read`,
    `adjust_config`, `configure`, `start`, `process`, `stop`, `teardown`.
    `process` returns `True` when the request should be dropped.
  - `register_stage(name)` is a class decorator adding a stage to the
    registry; `get_post_processing_stages()` gives a read-only view of it and
    `create_stage(name)` makes a new instance (raising `KeyError` for an
    unknown name).
  - `yuv420_to_rgb(src, src_info, dst_info)` converts a YUV420 image to
    packed RGB, cropping from the centre of the source.
  - `execution_time(f, *args, **kwargs)` returns how long a call took, in
    seconds.
- Stages, registered when their module is imported:
  - `camstages.negate.NegateStage` (`"negate"`): inverts every byte of the
    main stream's buffer.
  - `camstages.motion_detect.MotionDetectStage` (`"motion_detect"`):
    compares successive low resolution frames inside a region of interest
    and sets `motion_detect.result` in the request's
    `post_process_metadata`. Its settings live in `MotionDetectConfig`
    (`roi_x`, `roi_y`, `roi_width`, `roi_height`, `hskip`, `vskip`,
    `difference_m`, `difference_c`, `region_threshold`, `frame_period`,
    `verbose`).
- Network-output helpers:
  - `camstages.object_detect`: `ObjectDetector.interpret` maps boxes from a
    300x300 centre crop of the low resolution image into the main image and
    merges overlapping boxes of the same class; `apply` stores the
    `Detection` list as `object_detect.results`. `read_detect_labels` reads
    a labels file whose first line is skipped. `Rectangle` offers `area` and
    `bounded_to`.
  - `camstages.pose`: `interpret_pose(heatmaps, offsets, width, height)`
    locates 17 keypoints from a 9x9 heatmap and its offsets, returning a
    `PoseResult`; `apply_pose` stores `pose_estimation.locations` and
    `pose_estimation.confidences`.
  - `camstages.segmentation`: `segment` picks the most likely category per
    pixel, `category_histogram` counts pixels per category, `summarise`
    lists categories above a pixel threshold, and `draw_segmentation` draws
    a 257x257 map in greyscale into the bottom right of a YUV420 image.
    `read_segmentation_labels` reads one label per line, and `Segmentation`
    holds a map with its labels.

## Installing

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Examples

Piecewise linear functions:

```python
from camstages.pwl import Pwl

curve = Pwl.from_flat([0, 0, 128, 200, 255, 255])
print(curve.eval(64))          # 100.0
lut = curve.generate_lut(as_int=True)
print(len(lut))                # 256
```

Running a stage from the registry:

```python
import camstages.negate  # registers "negate"
from camstages.stage import CompletedRequest, StreamInfo, StreamSet, create_stage

stage = create_stage("negate")
stage.configure(StreamSet(main=StreamInfo(width=4, height=2, stride=4)))
request = CompletedRequest(buffers={"main": bytearray(b"\x00\x10\x80\xff" * 3)})
stage.process(request)
print(request.buffers["main"][:4])   # bytearray(b'\xff\xef\x7f\x00')
```

Motion detection on the low resolution stream:

```python
import camstages.motion_detect
from camstages.stage import create_stage, StreamInfo, StreamSet

stage = create_stage("motion_detect")
stage.read({"frame_period": 0, "region_threshold": 0.01})
stage.configure(StreamSet(lores=StreamInfo(width=128, height=96, stride=128)))
```

Each processed request then carries `motion_detect.result` in its
`post_process_metadata`.

## What this package does not do

- It does not talk to a camera: frames and stream descriptions are supplied
  by the caller as `CompletedRequest` and `StreamSet` objects.
- It does not load or run neural networks. The helpers in
  `camstages.object_detect`, `camstages.pose` and `camstages.segmentation`
  only interpret output arrays that the caller has already produced.
- It has no preview window and no command-line program; it is a library.