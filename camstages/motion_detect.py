"""A simple motion detector working on the low resolution stream.

Pixels of the current lores image are compared with those of the previous
one; if enough differ by more than a threshold, motion is reported as
``motion_detect.result`` in the post-processing metadata.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from camstages.stage import CompletedRequest, PostProcessingStage, StreamSet, register_stage

NAME = "motion_detect"

logger = logging.getLogger(__name__)


@dataclass
class MotionDetectConfig:
    """Detector settings; region sizes are fractions of the lores image."""

    roi_x: float = 0.0
    roi_y: float = 0.0
    roi_width: float = 1.0
    roi_height: float = 1.0
    hskip: int = 1
    vskip: int = 1
    difference_m: float = 0.1
    difference_c: int = 10
    region_threshold: float = 0.005
    frame_period: int = 5
    verbose: bool = False


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@register_stage(NAME)
class MotionDetectStage(PostProcessingStage):
    """Flags motion between successive low resolution frames."""

    def __init__(self) -> None:
        self.config = MotionDetectConfig()
        self._active = False
        self._lores_stride = 0
        self._roi_x = self._roi_y = 0
        self._roi_width = self._roi_height = 0
        self._region_threshold = 0
        self._previous: np.ndarray | None = None
        self._first_time = True
        self._motion_detected = False
        self._lock = threading.Lock()

    def name(self) -> str:
        return NAME

    def read(self, params: Mapping[str, Any]) -> None:
        self.config = MotionDetectConfig(
            roi_x=float(params.get("roi_x", 0.0)),
            roi_y=float(params.get("roi_y", 0.0)),
            roi_width=float(params.get("roi_width", 1.0)),
            roi_height=float(params.get("roi_height", 1.0)),
            hskip=int(params.get("hskip", 1)),
            vskip=int(params.get("vskip", 1)),
            difference_m=float(params.get("difference_m", 0.1)),
            difference_c=int(params.get("difference_c", 10)),
            region_threshold=float(params.get("region_threshold", 0.005)),
            frame_period=int(params.get("frame_period", 5)),
            verbose=bool(int(params.get("verbose", 0))),
        )

    def configure(self, streams: StreamSet) -> None:
        info = streams.lores
        self._active = info is not None
        if info is None:
            return
        cfg = self.config
        cfg.hskip = max(cfg.hskip, 1)
        cfg.vskip = max(cfg.vskip, 1)
        width = info.width // cfg.hskip
        height = info.height // cfg.vskip
        self._lores_stride = info.stride * cfg.vskip

        # Pixel positions as if in an image subsampled by hskip and vskip.
        roi_x = max(0, int(cfg.roi_x * width))
        roi_y = max(0, int(cfg.roi_y * height))
        roi_width = max(0, int(cfg.roi_width * width))
        roi_height = max(0, int(cfg.roi_height * height))
        region_threshold = max(0, int(cfg.region_threshold * roi_width * roi_height))

        self._roi_x = _clamp(roi_x, 0, width)
        self._roi_y = _clamp(roi_y, 0, height)
        self._roi_width = _clamp(roi_width, 0, width - self._roi_x)
        self._roi_height = _clamp(roi_height, 0, height - self._roi_y)
        self._region_threshold = _clamp(region_threshold, 0, self._roi_width * self._roi_height)

        if cfg.verbose:
            logger.info(
                "Lores: %dx%d roi: (%d,%d) %dx%d threshold: %d",
                width,
                height,
                self._roi_x,
                self._roi_y,
                self._roi_width,
                self._roi_height,
                self._region_threshold,
            )

        self._previous = np.zeros((self._roi_height, self._roi_width), dtype=np.int32)
        self._first_time = True
        self._motion_detected = False

    def _sample(self, buffer: bytes | bytearray) -> np.ndarray:
        data = np.frombuffer(buffer, dtype=np.uint8)
        hskip = self.config.hskip
        rows = (self._roi_y + np.arange(self._roi_height)) * self._lores_stride + self._roi_x * hskip
        cols = np.arange(self._roi_width) * hskip
        return data[rows[:, None] + cols[None, :]].astype(np.int32)

    def process(self, request: CompletedRequest) -> bool:
        if not self._active:
            return False
        period = self.config.frame_period
        if period and request.sequence % period:
            return False

        current = self._sample(request.buffers["lores"])

        with self._lock:
            if self._first_time:
                self._first_time = False
                self._previous = current
                request.post_process_metadata["motion_detect.result"] = self._motion_detected
                return False

            previous = self._previous
            self._previous = current
            limit = np.float32(self.config.difference_m) * previous.astype(np.float32) + np.float32(
                self.config.difference_c
            )
            regions = int(np.count_nonzero(np.abs(current - previous) > limit))
            motion_detected = current.size > 0 and regions >= self._region_threshold

            if self.config.verbose and motion_detected != self._motion_detected:
                logger.info("Motion %s", "detected" if motion_detected else "stopped")

            self._motion_detected = motion_detected
            request.post_process_metadata["motion_detect.result"] = motion_detected
        return False