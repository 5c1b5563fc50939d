import numpy as np
import pytest

from camstages.pose import FEATURE_SIZE, HEATMAP_DIMS, apply_pose, interpret_pose
from camstages.stage import CompletedRequest


def _empty():
    heat = np.zeros((HEATMAP_DIMS, HEATMAP_DIMS, FEATURE_SIZE), dtype=np.float32)
    offsets = np.zeros((HEATMAP_DIMS, HEATMAP_DIMS, 2 * FEATURE_SIZE), dtype=np.float32)
    return heat, offsets


def test_all_zero():
    heat, offsets = _empty()
    result = interpret_pose(heat, offsets, 640, 480)
    assert len(result.locations) == FEATURE_SIZE
    assert all(loc == (0, 0) for loc in result.locations)
    assert all(c == 0 for c in result.confidences)


def test_peak_found():
    heat, offsets = _empty()
    heat[5, 3, 4] = 0.75
    result = interpret_pose(heat, offsets, HEATMAP_DIMS - 1, HEATMAP_DIMS - 1)
    assert result.heats[4] == (3, 5)
    assert result.locations[4] == (3, 5)
    assert result.confidences[4] == pytest.approx(0.75)
    assert result.heats[0] == (0, 0)


def test_offsets_added():
    heat, offsets = _empty()
    heat[5, 3, 2] = 0.5
    offsets[5, 3, 2] = 2.0
    offsets[5, 3, FEATURE_SIZE + 2] = 3.0
    result = interpret_pose(heat, offsets, HEATMAP_DIMS - 1, HEATMAP_DIMS - 1)
    assert result.locations[2] == (6, 7)


def test_location_scales_with_size():
    heat, offsets = _empty()
    heat[2, 6, 0] = 0.5
    small = interpret_pose(heat, offsets, 8, 8)
    large = interpret_pose(heat, offsets, 80, 80)
    assert large.locations[0] == (small.locations[0][0] * 10, small.locations[0][1] * 10)


def test_wrong_sizes():
    heat, offsets = _empty()
    with pytest.raises(ValueError):
        interpret_pose(heat.reshape(-1)[:-1], offsets, 8, 8)
    with pytest.raises(ValueError):
        interpret_pose(heat, offsets.reshape(-1)[:-1], 8, 8)


def test_apply_pose():
    heat, offsets = _empty()
    result = interpret_pose(heat, offsets, 8, 8)
    request = CompletedRequest()
    apply_pose(request, result)
    assert request.post_process_metadata["pose_estimation.locations"] == result.locations
    assert request.post_process_metadata["pose_estimation.confidences"] == result.confidences