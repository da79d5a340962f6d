"""
Editing session for Chroma Studio.

``EditingSession`` is the stateful front of the pipeline: it owns the
foreground and background rasters, the current RenderSettings, the crop
editing flag and the processing status, and renders on demand through a
cached CompositorPipeline. Settings records are frozen; every update
replaces the record wholesale.

Backdrop generation is the one operation that can complete out of order.
Each request gets a ticket from ``start_backdrop_generation``; a response
handed to ``finish_backdrop_generation`` is installed only if its ticket is
the newest one issued, so a slow earlier request can never overwrite the
result of a later one.

Example:
    >>> session = EditingSession()
    >>> session.load_foreground("subject.png")
    >>> session.update_chroma(similarity=0.3, key_color="#00ff00")
    >>> preview = session.render()
    >>> result = session.export(ExportSettings(format="jpeg", max_size_kb=500))
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from CS_Libs.ImageEditingLib.image_models import (
    ChromaSettings,
    CropRect,
    ImageAdjustments,
    ProcessingStatus,
    RenderSettings,
    TransformSettings,
)
from CS_Libs.PipelineLib.render_pipeline import CompositorPipeline
from CS_Libs.ServicesLib.backdrop_service import BackdropService, BackdropServiceError
from CS_Libs.ServicesLib.export_encoder import ExportResult, ExportSettings, encode_for_export
from CS_Libs.ServicesLib.image_import import (
    ImageDecodeError,
    coerce_raster,
    decode_data_url,
    decode_image_bytes,
    load_image_file,
)
from CS_Libs.StoreLib.preset_store import load_preset
from CS_Libs.constants import BACKDROP_FALLBACK_CHECKERBOARD

logger = logging.getLogger(__name__)

ImageSource = Union[str, Path, bytes, bytearray]


def _decode_source(source: ImageSource) -> Any:
    """Decode a path, encoded bytes or a data URL into an RGBA image."""
    if isinstance(source, (bytes, bytearray)):
        return decode_image_bytes(bytes(source))
    if isinstance(source, str) and source.startswith("data:"):
        return decode_data_url(source)
    return load_image_file(Path(source))


class EditingSession:
    """Holds the rasters and settings of one compositing session.

    Attributes:
        foreground: RGBA foreground image or None
        background: RGBA background image or None
        settings: Current RenderSettings
        crop_editing: True while the crop rectangle is being edited
        status: Current ProcessingStatus
        last_error: Message of the most recent failure, or None
        pipeline: Cached CompositorPipeline used by render()
    """

    def __init__(
        self,
        settings: Optional[RenderSettings] = None,
        backdrop_fallback: str = BACKDROP_FALLBACK_CHECKERBOARD,
    ):
        self.foreground: Optional[Any] = None
        self.background: Optional[Any] = None
        self.settings = settings or RenderSettings()
        self.crop_editing = False
        self.status = ProcessingStatus.IDLE
        self.last_error: Optional[str] = None
        self.pipeline = CompositorPipeline(backdrop_fallback=backdrop_fallback)
        self._backdrop_sequence = 0
        self._pending_backdrop: Optional[int] = None
        # Sources and crop-free settings the cached composite was built from
        self._composited_from: Optional[Tuple[Any, ...]] = None

    @property
    def chroma(self) -> ChromaSettings:
        return self.settings.chroma

    @property
    def adjustments(self) -> ImageAdjustments:
        return self.settings.adjustments

    @property
    def transform(self) -> TransformSettings:
        return self.settings.transform

    @property
    def backdrop_pending(self) -> bool:
        return self._pending_backdrop is not None

    def _fail(self, message: str) -> None:
        self.status = ProcessingStatus.ERROR
        self.last_error = message
        logger.warning(message)

    def _clear_error(self) -> None:
        if self.status == ProcessingStatus.ERROR:
            self.status = ProcessingStatus.IDLE
        self.last_error = None

    # ------------------------------------------------------------------
    # Rasters
    # ------------------------------------------------------------------

    def load_foreground(self, source: ImageSource) -> bool:
        """
        Load the foreground from a path, encoded bytes or a data URL.

        On failure the previous foreground is kept and the status becomes
        ERROR.

        Returns:
            True if the new foreground was installed
        """
        try:
            image = _decode_source(source)
        except (ImageDecodeError, FileNotFoundError) as e:
            self._fail(f"Could not load foreground: {e}")
            return False
        self.set_foreground(image)
        return True

    def load_background(self, source: ImageSource) -> bool:
        """Load the background; same contract as load_foreground."""
        try:
            image = _decode_source(source)
        except (ImageDecodeError, FileNotFoundError) as e:
            self._fail(f"Could not load background: {e}")
            return False
        self.set_background(image)
        return True

    def set_foreground(self, raster: Any) -> None:
        """Install a decoded raster (PIL Image or numpy array) as foreground."""
        self.foreground = coerce_raster(raster)
        self._clear_error()
        logger.debug(f"Foreground set ({self.foreground.size[0]}x{self.foreground.size[1]})")

    def set_background(self, raster: Any) -> None:
        self.background = coerce_raster(raster)
        self._clear_error()
        logger.debug(f"Background set ({self.background.size[0]}x{self.background.size[1]})")

    def clear_background(self) -> None:
        self.background = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def update_chroma(self, **changes: Any) -> ChromaSettings:
        """Replace the chroma settings with ``changes`` applied."""
        self.settings = replace(self.settings, chroma=replace(self.settings.chroma, **changes))
        return self.settings.chroma

    def update_adjustments(self, **changes: Any) -> ImageAdjustments:
        self.settings = replace(
            self.settings,
            adjustments=replace(self.settings.adjustments, **changes),
        )
        return self.settings.adjustments

    def update_transform(self, **changes: Any) -> TransformSettings:
        """
        Replace the transform settings with ``changes`` applied.

        A ``crop`` change may be a CropRect or a dict; it is clamped to the
        minimum crop size and to the canvas.
        """
        crop = changes.get("crop")
        if isinstance(crop, dict):
            crop = CropRect.from_dict(crop)
        if crop is not None:
            changes["crop"] = crop.clamped()
        self.settings = replace(
            self.settings,
            transform=replace(self.settings.transform, **changes),
        )
        return self.settings.transform

    def reset_adjustments(self) -> None:
        self.settings = replace(self.settings, adjustments=ImageAdjustments())

    def apply_settings(self, settings: RenderSettings) -> None:
        self.settings = settings

    def apply_preset(self, preset_path: Path) -> RenderSettings:
        """Load a preset file and make its settings current."""
        self.settings = load_preset(preset_path)
        logger.info(f"Applied preset {Path(preset_path).name}")
        return self.settings

    def set_crop_editing(self, editing: bool) -> None:
        self.crop_editing = bool(editing)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _composite_inputs(self) -> Tuple[Any, ...]:
        """Everything the uncropped composite depends on."""
        return (
            self.foreground,
            self.background,
            self.settings.chroma,
            self.settings.adjustments,
            replace(self.settings.transform, crop=CropRect()),
        )

    def _composite_is_current(self) -> bool:
        if self.pipeline.composite is None or self._composited_from is None:
            return False
        foreground, background, *settings = self._composited_from
        current = self._composite_inputs()
        return (
            foreground is current[0]
            and background is current[1]
            and tuple(settings) == current[2:]
        )

    def _render_pipeline(self, crop_mode: bool) -> Optional[Any]:
        result = self.pipeline.render(
            self.foreground,
            self.background,
            self.settings.chroma,
            self.settings.adjustments,
            self.settings.transform,
            crop_mode=crop_mode,
        )
        self._composited_from = self._composite_inputs() if result is not None else None
        return result

    def render(self) -> Optional[Any]:
        """
        Render the current state.

        Returns:
            RGBA PIL Image, or None when no foreground is loaded
        """
        if self.foreground is None:
            return None

        track_status = self.status in (
            ProcessingStatus.IDLE,
            ProcessingStatus.PROCESSING,
            ProcessingStatus.DONE,
        )
        if track_status:
            self.status = ProcessingStatus.PROCESSING
        result = self._render_pipeline(self.crop_editing)
        if track_status:
            self.status = ProcessingStatus.DONE
        return result

    def drag_crop(self, crop: Union[CropRect, Dict[str, float]]) -> Optional[Any]:
        """
        Move the crop rectangle and re-resolve only the viewport.

        Falls back to a full render when nothing has been rendered yet or
        when the rasters or any non-crop setting changed since the last
        render.
        """
        self.update_transform(crop=crop)
        if not self._composite_is_current():
            return self.render()
        return self.pipeline.resolve_crop(self.settings.transform.crop, self.crop_editing)

    # ------------------------------------------------------------------
    # Backdrop generation
    # ------------------------------------------------------------------

    def start_backdrop_generation(self, prompt: str) -> int:
        """
        Register a new backdrop request.

        Returns:
            Ticket to pass to finish_backdrop_generation

        Raises:
            ValueError: If the prompt is empty or blank
        """
        if not prompt or not prompt.strip():
            raise ValueError("Backdrop prompt must not be empty")
        self._backdrop_sequence += 1
        self._pending_backdrop = self._backdrop_sequence
        self.status = ProcessingStatus.GENERATING_BG
        self.last_error = None
        logger.debug(f"Backdrop request {self._backdrop_sequence} started")
        return self._backdrop_sequence

    def finish_backdrop_generation(
        self,
        ticket: int,
        data: Optional[ImageSource] = None,
        error: Optional[BaseException] = None,
    ) -> bool:
        """
        Complete a backdrop request.

        Responses for anything but the newest ticket are discarded. A failed
        or undecodable response keeps the current background and sets the
        status to ERROR.

        Returns:
            True if a new background was installed
        """
        if ticket != self._pending_backdrop:
            logger.debug(f"Discarding stale backdrop response {ticket}")
            return False
        self._pending_backdrop = None

        if error is not None or data is None:
            self._fail(f"Backdrop generation failed: {error or 'no image returned'}")
            return False

        try:
            image = _decode_source(data)
        except (ImageDecodeError, FileNotFoundError) as e:
            self._fail(f"Backdrop generation failed: {e}")
            return False

        self.background = image
        self.status = ProcessingStatus.IDLE
        self.last_error = None
        logger.info(f"Installed generated backdrop ({image.size[0]}x{image.size[1]})")
        return True

    def generate_backdrop(self, prompt: str, service: BackdropService) -> bool:
        """Run a backdrop request synchronously through ``service``."""
        ticket = self.start_backdrop_generation(prompt)
        try:
            data = service.generate(prompt)
        except BackdropServiceError as e:
            return self.finish_backdrop_generation(ticket, error=e)
        return self.finish_backdrop_generation(ticket, data=data)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export(self, settings: Optional[ExportSettings] = None) -> ExportResult:
        """
        Render the final (cropped) raster and encode it.

        Raises:
            ValueError: If no foreground is loaded
        """
        if self.foreground is None:
            raise ValueError("Nothing to export: no foreground loaded")

        image = self._render_pipeline(crop_mode=False)
        previous = self.status
        self.status = ProcessingStatus.COMPRESSING
        try:
            result = encode_for_export(image, settings)
        except Exception:
            self.status = previous
            raise
        self.status = ProcessingStatus.DONE if previous != ProcessingStatus.GENERATING_BG else previous
        logger.info(f"Encoded {result.format.upper()} export: {result.byte_size} bytes")
        return result
