"""Image negate effect."""

from __future__ import annotations

from camstages.stage import CompletedRequest, PostProcessingStage, StreamSet, register_stage

NAME = "negate"

_INVERT = bytes(255 - i for i in range(256))


@register_stage(NAME)
class NegateStage(PostProcessingStage):
    """Inverts every byte of the main stream's buffer."""

    def __init__(self) -> None:
        self._has_main = False

    def name(self) -> str:
        return NAME

    def configure(self, streams: StreamSet) -> None:
        self._has_main = streams.main is not None

    def process(self, request: CompletedRequest) -> bool:
        if not self._has_main:
            return False
        buffer = request.buffers["main"]
        buffer[:] = bytes(buffer).translate(_INVERT)
        return False