import numpy as np
import pytest

from camstages.segmentation import (
    HEIGHT,
    WIDTH,
    Segmentation,
    category_histogram,
    draw_segmentation,
    read_segmentation_labels,
    segment,
    summarise,
)
from camstages.stage import StreamInfo


def test_read_labels(tmp_path):
    path = tmp_path / "labels.txt"
    path.write_text("background\nperson\n")
    assert read_segmentation_labels(path) == ["background", "person"]


def test_segment_picks_largest():
    output = [0.1, 0.9, 0.0, 0.5, 0.2, 0.3, 0.4, 0.4, 0.1]
    assert segment(output, 3) == bytes([1, 0, 0])


def test_segment_bad_size():
    with pytest.raises(ValueError):
        segment([0.1, 0.2, 0.3, 0.4], 3)
    with pytest.raises(ValueError):
        segment([0.1], 0)


def test_histogram_counts():
    data = bytes([0, 1, 1, 2, 2, 2])
    hist = category_histogram(data, 4)
    assert hist == [1, 2, 3, 0]
    assert sum(hist) == len(data)


def test_summarise():
    assert summarise([5, 10, 1], ["a", "b", "c"], 5) == "b (10), a (5)"
    assert summarise([1, 2], ["a", "b"], 5) == ""


def test_segmentation_record():
    seg = Segmentation(WIDTH, HEIGHT, ["a"], bytes(WIDTH * HEIGHT))
    assert len(seg.data) == seg.width * seg.height


def _image(size):
    info = StreamInfo(width=size, height=size, stride=size)
    return info, bytearray(size * size * 3 // 2)


def test_draw_segmentation():
    info, buffer = _image(300)
    draw_segmentation(buffer, info, np.ones((HEIGHT, WIDTH), dtype=np.uint8), 1)
    luma = np.frombuffer(buffer, dtype=np.uint8)[: 300 * 300].reshape(300, 300)
    assert np.all(luma[300 - HEIGHT :, 300 - WIDTH :] == 255)
    assert np.all(luma[: 300 - HEIGHT, :] == 0)
    chroma = np.frombuffer(buffer, dtype=np.uint8)[300 * 300 :]
    assert np.count_nonzero(chroma == 128) == 2 * (HEIGHT // 2) * (WIDTH // 2)


def test_draw_flat_segmentation_matches_2d():
    info, flat_buffer = _image(300)
    _, map_buffer = _image(300)
    seg = np.zeros((HEIGHT, WIDTH), dtype=np.uint8)
    seg[10:20, 30:40] = 1
    draw_segmentation(flat_buffer, info, seg.tobytes(), 2)
    draw_segmentation(map_buffer, info, seg, 2)
    assert flat_buffer == map_buffer


def test_draw_too_small_image():
    info, buffer = _image(200)
    with pytest.raises(ValueError):
        draw_segmentation(buffer, info, np.zeros((HEIGHT, WIDTH), dtype=np.uint8), 1)


def test_draw_no_labels():
    info, buffer = _image(300)
    with pytest.raises(ValueError):
        draw_segmentation(buffer, info, np.zeros((HEIGHT, WIDTH), dtype=np.uint8), 0)