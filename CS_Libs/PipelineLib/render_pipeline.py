"""
Render Pipeline for the Chroma Studio compositor.

Runs the compositing stages in a fixed order:

    chroma_key -> adjust -> transform --\
                                         composite -> crop
                           backdrop ----/

Each stage is an executor taking the render context and the outputs of its
input stages (see ``STAGE_EXECUTORS``). ``CompositorPipeline`` remembers every stage's output
together with the settings it was computed from and, on the next render,
re-executes only the stages whose settings changed plus everything
downstream of them. The result is always identical to a full recompute.

Functions:
    render: One-shot, uncached render of a full settings set

Classes:
    RenderContext: Inputs of one pipeline run
    CompositorPipeline: Cached pipeline with a crop-only fast path
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from CS_Libs.ImageEditingLib.adjustment_filter import apply_adjustments
from CS_Libs.ImageEditingLib.backdrop_filter import build_backdrop
from CS_Libs.ImageEditingLib.chroma_key_filter import apply_chroma_key
from CS_Libs.ImageEditingLib.crop_filter import resolve_viewport
from CS_Libs.ImageEditingLib.image_editing_ops import composite_over, ensure_rgba
from CS_Libs.ImageEditingLib.image_models import (
    ChromaSettings,
    CropRect,
    ImageAdjustments,
    TransformSettings,
)
from CS_Libs.ImageEditingLib.transform_filter import apply_transform
from CS_Libs.constants import BACKDROP_FALLBACK_CHECKERBOARD

logger = logging.getLogger(__name__)

STAGE_CHROMA_KEY = "chroma_key"
STAGE_ADJUST = "adjust"
STAGE_TRANSFORM = "transform"
STAGE_BACKDROP = "backdrop"
STAGE_COMPOSITE = "composite"
STAGE_CROP = "crop"

# Cached stages in execution order, each with the stages it reads from
STAGE_ORDER: Tuple[str, ...] = (
    STAGE_CHROMA_KEY,
    STAGE_ADJUST,
    STAGE_TRANSFORM,
    STAGE_BACKDROP,
    STAGE_COMPOSITE,
)
STAGE_INPUTS: Dict[str, Tuple[str, ...]] = {
    STAGE_CHROMA_KEY: (),
    STAGE_ADJUST: (STAGE_CHROMA_KEY,),
    STAGE_TRANSFORM: (STAGE_ADJUST,),
    STAGE_BACKDROP: (),
    STAGE_COMPOSITE: (STAGE_TRANSFORM, STAGE_BACKDROP),
}


@dataclass
class RenderContext:
    """Everything one pipeline run reads.

    Attributes:
        foreground: RGBA PIL Image photographed against the key color
        background: Optional PIL Image used as the backdrop
        chroma: Chroma key settings
        adjustments: Tone and color adjustments
        transform: Geometric transform and crop settings
        backdrop_fallback: 'checkerboard' or 'solid' when no background
    """
    foreground: Any
    background: Optional[Any] = None
    chroma: ChromaSettings = field(default_factory=ChromaSettings)
    adjustments: ImageAdjustments = field(default_factory=ImageAdjustments)
    transform: TransformSettings = field(default_factory=TransformSettings)
    backdrop_fallback: str = BACKDROP_FALLBACK_CHECKERBOARD

    def stage_key(self, stage: str) -> Tuple[Hashable, ...]:
        """
        Values a stage's own output depends on (inputs from other stages
        excluded). Source images are identified by object identity.
        """
        if stage == STAGE_CHROMA_KEY:
            return (id(self.foreground), self.chroma)
        if stage == STAGE_ADJUST:
            return (self.adjustments,)
        if stage == STAGE_TRANSFORM:
            return self.transform.geometry_key()
        if stage == STAGE_BACKDROP:
            background_id = id(self.background) if self.background is not None else None
            return (background_id, self.foreground.size, self.backdrop_fallback)
        return ()


StageExecutor = Callable[[RenderContext, List[Any]], Any]


def execute_chroma_key_stage(context: RenderContext, inputs: List[Any]) -> Any:
    return apply_chroma_key(context.foreground, context.chroma)


def execute_adjust_stage(context: RenderContext, inputs: List[Any]) -> Any:
    return apply_adjustments(inputs[0], context.adjustments, original=context.foreground)


def execute_transform_stage(context: RenderContext, inputs: List[Any]) -> Any:
    return apply_transform(inputs[0], context.transform)


def execute_backdrop_stage(context: RenderContext, inputs: List[Any]) -> Any:
    # The backdrop is always sized to the foreground canvas
    return build_backdrop(context.foreground.size, context.background, context.backdrop_fallback)


def execute_composite_stage(context: RenderContext, inputs: List[Any]) -> Any:
    layer, backdrop = inputs
    return composite_over(layer, backdrop)


STAGE_EXECUTORS: Dict[str, StageExecutor] = {
    STAGE_CHROMA_KEY: execute_chroma_key_stage,
    STAGE_ADJUST: execute_adjust_stage,
    STAGE_TRANSFORM: execute_transform_stage,
    STAGE_BACKDROP: execute_backdrop_stage,
    STAGE_COMPOSITE: execute_composite_stage,
}


@dataclass
class _StageResult:
    key: Tuple[Hashable, ...]
    output: Any


class CompositorPipeline:
    """
    Compositing pipeline that reuses unaffected stage results.

    Example:
        >>> pipeline = CompositorPipeline()
        >>> first = pipeline.render(photo, backdrop, chroma, adjust, transform)
        >>> # Only transform, composite and crop run again
        >>> moved = pipeline.render(photo, backdrop, chroma, adjust,
        ...                         replace(transform, rotate=10))
    """

    def __init__(self, backdrop_fallback: str = BACKDROP_FALLBACK_CHECKERBOARD):
        self.backdrop_fallback = backdrop_fallback
        self._results: Dict[str, _StageResult] = {}
        # Held so the ids used in stage keys stay unique while cached
        self._sources: Tuple[Any, Any] = (None, None)
        self.last_executed: List[str] = []

    def clear(self) -> None:
        """Drop every cached stage result."""
        self._results.clear()
        self._sources = (None, None)
        self.last_executed = []

    @property
    def composite(self) -> Optional[Any]:
        """Uncropped composite from the most recent render, if any."""
        result = self._results.get(STAGE_COMPOSITE)
        return result.output if result is not None else None

    def render(
        self,
        foreground: Optional[Any],
        background: Optional[Any] = None,
        chroma: Optional[ChromaSettings] = None,
        adjustments: Optional[ImageAdjustments] = None,
        transform: Optional[TransformSettings] = None,
        crop_mode: bool = False,
    ) -> Optional[Any]:
        """
        Render the final raster.

        Args:
            foreground: Keyable PIL Image; None makes the call a no-op
            background: Optional backdrop PIL Image
            chroma: Chroma key settings (defaults if None)
            adjustments: Adjustments (identity if None)
            transform: Transform settings (identity if None)
            crop_mode: True while the crop is being edited; returns the
                       uncropped composite

        Returns:
            New RGBA PIL Image, or None when there is no foreground
        """
        if foreground is None:
            logger.debug("Render skipped: no foreground loaded")
            self.clear()
            return None

        context = RenderContext(
            foreground=foreground,
            background=background,
            chroma=chroma if chroma is not None else ChromaSettings(),
            adjustments=adjustments if adjustments is not None else ImageAdjustments(),
            transform=transform if transform is not None else TransformSettings(),
            backdrop_fallback=self.backdrop_fallback,
        )
        # Ids in the stage keys refer to the caller's objects, so convert
        # only after the keys are taken
        keys = {stage: context.stage_key(stage) for stage in STAGE_ORDER}
        context.foreground = ensure_rgba(foreground)
        self._sources = (foreground, background)

        executed: List[str] = []
        for stage in STAGE_ORDER:
            cached = self._results.get(stage)
            upstream_changed = any(dep in executed for dep in STAGE_INPUTS[stage])
            if cached is not None and not upstream_changed and cached.key == keys[stage]:
                logger.debug(f"Stage {stage} reused from cache")
                continue

            inputs = [self._results[dep].output for dep in STAGE_INPUTS[stage]]
            started = time.perf_counter()
            try:
                output = STAGE_EXECUTORS[stage](context, inputs)
            except Exception:
                self.clear()
                raise
            self._results[stage] = _StageResult(key=keys[stage], output=output)
            executed.append(stage)
            logger.debug(f"Stage {stage} ran in {(time.perf_counter() - started) * 1000:.1f} ms")

        self.last_executed = executed + [STAGE_CROP]
        return resolve_viewport(self.composite, context.transform.crop, crop_mode)

    def resolve_crop(self, crop: CropRect, crop_mode: bool = False) -> Optional[Any]:
        """
        Re-run only the crop stage against the last composite.

        Used while a crop rectangle is dragged: no other stage can have
        changed, so the pixel copy is all that is needed.

        Returns:
            New PIL Image, or None if nothing has been rendered yet
        """
        composite = self.composite
        if composite is None:
            return None
        self.last_executed = [STAGE_CROP]
        return resolve_viewport(composite, crop, crop_mode)


def render(
    foreground: Optional[Any],
    background: Optional[Any] = None,
    chroma: Optional[ChromaSettings] = None,
    adjustments: Optional[ImageAdjustments] = None,
    transform: Optional[TransformSettings] = None,
    crop_mode: bool = False,
    backdrop_fallback: str = BACKDROP_FALLBACK_CHECKERBOARD,
) -> Optional[Any]:
    """
    Render the final raster from scratch.

    Pure function of its inputs: nothing is cached between calls and the
    source images are never modified.

    Args:
        foreground: Keyable PIL Image; None returns None
        background: Optional backdrop PIL Image
        chroma: Chroma key settings
        adjustments: Tone and color adjustments
        transform: Geometric transform and crop
        crop_mode: True to return the uncropped composite for crop editing
        backdrop_fallback: 'checkerboard' or 'solid' when no background

    Returns:
        New RGBA PIL Image, or None without a foreground
    """
    pipeline = CompositorPipeline(backdrop_fallback=backdrop_fallback)
    return pipeline.render(foreground, background, chroma, adjustments, transform, crop_mode)
