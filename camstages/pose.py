"""Pose estimation: locating body keypoints from heatmaps and offsets."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from camstages.stage import CompletedRequest

NAME = "pose_estimation_tf"
FEATURE_SIZE = 17
HEATMAP_DIMS = 9


@dataclass
class PoseResult:
    """Keypoint locations in the main image, their confidences and heatmap cells."""

    locations: list[tuple[int, int]] = field(default_factory=list)
    confidences: list[float] = field(default_factory=list)
    heats: list[tuple[int, int]] = field(default_factory=list)


def interpret_pose(
    heatmaps: Sequence[float] | np.ndarray,
    offsets: Sequence[float] | np.ndarray,
    width: int,
    height: int,
) -> PoseResult:
    """Find each feature's strongest heatmap cell and refine it with its offsets.

    ``width`` and ``height`` are the size of the image the locations refer to.
    """
    heat = np.asarray(heatmaps, dtype=np.float32).reshape(-1)
    offs = np.asarray(offsets, dtype=np.float32).reshape(-1)
    cells = HEATMAP_DIMS * HEATMAP_DIMS
    if heat.size != cells * FEATURE_SIZE:
        raise ValueError(f"expected {cells * FEATURE_SIZE} heatmap values, got {heat.size}")
    if offs.size != cells * FEATURE_SIZE * 2:
        raise ValueError(f"expected {cells * FEATURE_SIZE * 2} offset values, got {offs.size}")

    result = PoseResult()
    for i in range(FEATURE_SIZE):
        confidence = heat[i]
        coord = (0, 0)
        for y in range(HEATMAP_DIMS):
            for x in range(HEATMAP_DIMS):
                value = heat[FEATURE_SIZE * (HEATMAP_DIMS * y + x) + i]
                if value > confidence:
                    confidence = value
                    coord = (x, y)
        result.heats.append(coord)
        result.confidences.append(float(confidence))

    for i, (x, y) in enumerate(result.heats):
        j = FEATURE_SIZE * 2 * (HEATMAP_DIMS * y + x) + i
        loc_y = int(np.float32(y * height // (HEATMAP_DIMS - 1)) + offs[j])
        loc_x = int(np.float32(x * width // (HEATMAP_DIMS - 1)) + offs[j + FEATURE_SIZE])
        result.locations.append((loc_x, loc_y))
    return result


def apply_pose(request: CompletedRequest, result: PoseResult) -> None:
    """Attach keypoint locations and confidences to a request."""
    request.post_process_metadata["pose_estimation.locations"] = list(result.locations)
    request.post_process_metadata["pose_estimation.confidences"] = list(result.confidences)