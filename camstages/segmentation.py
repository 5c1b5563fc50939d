"""Image segmentation: per-pixel categories, summaries and drawing."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from camstages.stage import StreamInfo

NAME = "segmentation_tf"
WIDTH = 257
HEIGHT = 257


@dataclass
class Segmentation:
    """A category map of ``width`` x ``height`` pixels with its labels."""

    width: int
    height: int
    labels: list[str] = field(default_factory=list)
    data: bytes = b""


def read_segmentation_labels(path: str | os.PathLike[str]) -> list[str]:
    """Read one label per line from a labels file."""
    with open(path, encoding="utf-8", newline="") as f:
        lines = f.read().split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def segment(output: Sequence[float] | np.ndarray, num_categories: int) -> bytes:
    """Pick, for each pixel, the category with the highest confidence."""
    if num_categories <= 0:
        raise ValueError("number of categories must be positive")
    values = np.asarray(output, dtype=np.float32).reshape(-1)
    if values.size % num_categories:
        raise ValueError("output size is not a multiple of the number of categories")
    indices = np.argmax(values.reshape(-1, num_categories), axis=1)
    return indices.astype(np.uint8).tobytes()


def category_histogram(segmentation: bytes | Sequence[int], num_categories: int) -> list[int]:
    """Count the pixels in each category."""
    data = np.frombuffer(bytes(segmentation), dtype=np.uint8)
    counts = np.bincount(data, minlength=num_categories)
    return [int(c) for c in counts[:num_categories]]


def summarise(histogram: Sequence[int], labels: Sequence[str], threshold: int = 5000) -> str:
    """List the categories with at least ``threshold`` pixels, largest first."""
    pairs = sorted(zip(histogram, labels), key=lambda pair: pair[0], reverse=True)
    return ", ".join(f"{label} ({count})" for count, label in pairs if count >= threshold)


def _as_map(segmentation: bytes | bytearray | memoryview | Sequence[int] | np.ndarray) -> np.ndarray:
    if isinstance(segmentation, (bytes, bytearray, memoryview)):
        data = np.frombuffer(segmentation, dtype=np.uint8)
    else:
        data = np.asarray(segmentation, dtype=np.uint8)
    if data.ndim == 1:
        if data.size != WIDTH * HEIGHT:
            raise ValueError(f"a flat segmentation must hold {WIDTH * HEIGHT} values")
        data = data.reshape(HEIGHT, WIDTH)
    if data.ndim != 2:
        raise ValueError("segmentation must be a 2D map")
    return data


def draw_segmentation(
    buffer: bytearray,
    info: StreamInfo,
    segmentation: bytes | Sequence[int] | np.ndarray,
    num_labels: int,
) -> None:
    """Draw the category map in greyscale into the bottom right of a YUV420 image."""
    if num_labels <= 0:
        raise ValueError("number of labels must be positive")
    seg = _as_map(segmentation)
    seg_h, seg_w = seg.shape
    y_offset = info.height - seg_h
    x_offset = info.width - seg_w
    if y_offset < 0 or x_offset < 0:
        raise ValueError("image is smaller than the segmentation")
    if info.stride < info.width:
        raise ValueError("stride is smaller than the image width")
    uv_stride = info.stride // 2
    uv_size = (info.height // 2) * uv_stride
    y_size = info.height * info.stride
    if len(buffer) < y_size + 2 * uv_size:
        raise ValueError("buffer is too small for the image")

    out = np.frombuffer(buffer, dtype=np.uint8)
    scale = 255 // num_labels
    luma = out[:y_size].reshape(info.height, info.stride)
    luma[y_offset : y_offset + seg_h, x_offset : x_offset + seg_w] = (
        seg.astype(np.int64) * scale
    ).astype(np.uint8)

    # Make the drawn area grey.
    y_offset //= 2
    x_offset //= 2
    half_w = seg_w // 2
    for y in range(seg_h // 2):
        start = y_size + (y + y_offset) * uv_stride + x_offset
        out[start : start + half_w] = 128
        out[start + uv_size : start + uv_size + half_w] = 128