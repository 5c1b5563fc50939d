"""Object detection: turning detector outputs into boxes in the main image."""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from camstages.stage import CompletedRequest, StreamInfo

NAME = "object_detect_tf"
TF_WIDTH = 300
TF_HEIGHT = 300

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rectangle:
    """An axis-aligned rectangle in pixel units."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def area(self) -> int:
        return self.width * self.height

    def bounded_to(self, other: Rectangle) -> Rectangle:
        """The intersection of this rectangle with ``other``."""
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.x + self.width, other.x + other.width)
        bottom = min(self.y + self.height, other.y + other.height)
        return Rectangle(left, top, max(right - left, 0), max(bottom - top, 0))


@dataclass
class Detection:
    """One detected object."""

    category: int
    name: str
    confidence: float
    box: Rectangle

    def __str__(self) -> str:
        b = self.box
        return (
            f"{self.name}[{self.category}] ({self.confidence:.2f}) "
            f"@ {b.x},{b.y} {b.width}x{b.height}"
        )


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def read_detect_labels(path: str | os.PathLike[str]) -> list[str]:
    """Read a labels file, whose first line is not a label."""
    with open(path, encoding="utf-8", newline="") as f:
        lines = f.read().split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines[1:]


class ObjectDetector:
    """Converts detector outputs into non-overlapping detections."""

    def __init__(
        self,
        labels: Sequence[str],
        confidence_threshold: float = 0.5,
        overlap_threshold: float = 0.5,
    ) -> None:
        self.labels = list(labels)
        self.confidence_threshold = confidence_threshold
        self.overlap_threshold = overlap_threshold
        self.verbose = False
        self.results: list[Detection] = []

    def interpret(
        self,
        boxes: Sequence[float] | np.ndarray,
        classes: Sequence[float] | np.ndarray,
        scores: Sequence[float] | np.ndarray,
        lores_info: StreamInfo,
        main_info: StreamInfo,
    ) -> list[Detection]:
        """Interpret one set of outputs; boxes are (top, left, bottom, right) fractions."""
        box_array = np.asarray(boxes, dtype=np.float32).reshape(-1, 4)
        class_array = np.asarray(classes, dtype=np.float32).reshape(-1)
        score_array = np.asarray(scores, dtype=np.float32).reshape(-1)
        if len(class_array) < len(box_array) or len(score_array) < len(box_array):
            raise ValueError("classes and scores must cover every box")
        if lores_info.width < TF_WIDTH or lores_info.height < TF_HEIGHT:
            raise ValueError("low resolution image is smaller than the network input")

        confidence_threshold = np.float32(self.confidence_threshold)
        overlap_threshold = np.float32(self.overlap_threshold)
        tf_w, tf_h = np.float32(TF_WIDTH), np.float32(TF_HEIGHT)
        results: list[Detection] = []

        for box, class_value, score in zip(box_array, class_array, score_array):
            if score < confidence_threshold:
                continue
            # Coordinates in the image fed to the network.
            y = _clamp(int(tf_h * box[0]), 0, TF_HEIGHT)
            x = _clamp(int(tf_w * box[1]), 0, TF_WIDTH)
            h = _clamp(int(tf_h * box[2] - np.float32(y)), 0, TF_HEIGHT)
            w = _clamp(int(tf_w * box[3] - np.float32(x)), 0, TF_WIDTH)
            # The network sees a centre crop of the lores image.
            y += (lores_info.height - TF_HEIGHT) // 2
            x += (lores_info.width - TF_WIDTH) // 2
            # The lores image is a pure scaling of the main image.
            y = y * main_info.height // lores_info.height
            x = x * main_info.width // lores_info.width
            h = h * main_info.height // lores_info.height
            w = w * main_info.width // lores_info.width

            category = int(class_value)
            if not 0 <= category < len(self.labels):
                raise ValueError(f"class {category} has no label")
            detection = Detection(category, self.labels[category], float(score), Rectangle(x, y, w, h))

            overlapped = False
            for k, previous in enumerate(results):
                if previous.category != category:
                    continue
                overlap = np.float32(previous.box.bounded_to(detection.box).area())
                if overlap > overlap_threshold * np.float32(previous.box.area()) or overlap > (
                    overlap_threshold * np.float32(detection.box.area())
                ):
                    if detection.confidence > previous.confidence:
                        results[k] = detection
                    overlapped = True
                    break
            if not overlapped:
                results.append(detection)

        if self.verbose:
            for detection in results:
                logger.info("%s", detection)
        self.results = results
        return list(results)

    def apply(self, request: CompletedRequest) -> None:
        """Attach the latest detections to a request."""
        request.post_process_metadata["object_detect.results"] = list(self.results)