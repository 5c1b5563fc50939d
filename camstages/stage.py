"""Post-processing stage framework: stream descriptions, requests, the stage base
class, the stage registry and shared image helpers."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar

import numpy as np


@dataclass
class StreamInfo:
    """Geometry and format of one camera stream."""

    width: int = 0
    height: int = 0
    stride: int = 0
    pixel_format: str = "YUV420"
    colour_space: str | None = None


@dataclass
class StreamSet:
    """The streams a configured camera offers to the stages.

    Buffers for each stream are found in a request under the names
    ``"main"``, ``"lores"`` and ``"still"``.
    """

    main: StreamInfo | None = None
    lores: StreamInfo | None = None
    still: StreamInfo | None = None


@dataclass
class StreamConfiguration:
    """Requested configuration of a stream, which stages may adjust."""

    width: int = 0
    height: int = 0
    pixel_format: str = "YUV420"
    buffer_count: int = 1


@dataclass
class CompletedRequest:
    """A completed capture: frame buffers per stream plus metadata."""

    sequence: int = 0
    buffers: dict[str, bytearray] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    post_process_metadata: dict[str, Any] = field(default_factory=dict)


class PostProcessingStage(ABC):
    """Base class of every post-processing stage.

    The base class keeps track of the last use case it was asked to adjust a
    configuration for and of whether the camera is currently running.
    """

    use_case: str | None = None
    running: bool = False

    @abstractmethod
    def name(self) -> str:
        """The name under which the stage is registered."""

    def read(self, params: Mapping[str, Any]) -> None:
        """Read the stage's parameters; the default reads nothing."""

    def adjust_config(self, use_case: str, config: StreamConfiguration) -> None:
        """Adjust a stream configuration before the camera is configured.

        The default leaves the configuration alone and records the use case.
        """
        self.use_case = use_case

    def configure(self, streams: StreamSet) -> None:
        """Called once the camera has been configured."""

    def start(self) -> None:
        """Called when the camera starts."""
        self.running = True

    @abstractmethod
    def process(self, request: CompletedRequest) -> bool:
        """Process a completed request; return True if it should be dropped."""

    def stop(self) -> None:
        """Called when the camera stops."""
        self.running = False

    def teardown(self) -> None:
        """Release whatever :meth:`configure` set up."""
        self.running = False
        self.use_case = None


def yuv420_to_rgb(src: bytes | bytearray | memoryview, src_info: StreamInfo, dst_info: StreamInfo) -> bytearray:
    """Convert a YUV420 image to packed RGB, cropping from the centre of the source.

    The result holds ``dst_info.height`` rows of ``dst_info.stride`` bytes.
    """
    if src_info.width < dst_info.width or src_info.height < dst_info.height:
        raise ValueError("destination image is larger than the source image")
    if dst_info.stride < dst_info.width * 3:
        raise ValueError("destination stride is too small for RGB rows")

    data = np.frombuffer(src, dtype=np.uint8)
    off_x = ((src_info.width - dst_info.width) // 2) & ~1
    off_y = ((src_info.height - dst_info.height) // 2) & ~1
    y_size = src_info.height * src_info.stride
    uv_stride = src_info.stride // 2
    u_size = (src_info.height // 2) * uv_stride

    rows = np.arange(dst_info.height) + off_y
    cols = np.arange(dst_info.width) + off_x
    luma = data[rows[:, None] * src_info.stride + cols[None, :]].astype(np.float64)
    uv_index = y_size + (rows // 2)[:, None] * uv_stride + (cols // 2)[None, :]
    u = data[uv_index].astype(np.float64) - 128
    v = data[uv_index + u_size].astype(np.float64) - 128

    red = luma + 1.402 * v
    green = luma - 0.345 * u - 0.714 * v
    blue = luma + 1.771 * u
    rgb = np.clip(np.trunc(np.stack([red, green, blue], axis=-1)), 0, 255).astype(np.uint8)

    out = np.zeros((dst_info.height, dst_info.stride), dtype=np.uint8)
    out[:, : dst_info.width * 3] = rgb.reshape(dst_info.height, dst_info.width * 3)
    return bytearray(out.tobytes())


def execution_time(f: Callable[..., object], *args: Any, **kwargs: Any) -> float:
    """Run f with the given arguments and return how long it took, in seconds."""
    start = time.perf_counter()
    f(*args, **kwargs)
    return time.perf_counter() - start


StageFactory = Callable[[], PostProcessingStage]
_S = TypeVar("_S", bound=StageFactory)

_STAGES: dict[str, StageFactory] = {}


def register_stage(name: str) -> Callable[[_S], _S]:
    """Class decorator registering a stage factory under ``name``."""

    def decorator(factory: _S) -> _S:
        _STAGES[name] = factory
        return factory

    return decorator


def get_post_processing_stages() -> Mapping[str, StageFactory]:
    """A read-only view of the registered stage factories."""
    return MappingProxyType(_STAGES)


def create_stage(name: str) -> PostProcessingStage:
    """Create a new instance of the stage registered under ``name``."""
    try:
        factory = _STAGES[name]
    except KeyError:
        raise KeyError(f"no post-processing stage named {name!r}") from None
    return factory()