"""
PipelineLib - Render pipeline and editing session

This module runs the compositing stages in order, caches their results
between renders, and exposes the stateful editing session built on top.
"""

from CS_Libs.PipelineLib.render_pipeline import (
    CompositorPipeline,
    RenderContext,
    render,
)
from CS_Libs.PipelineLib.editing_session import EditingSession

__all__ = [
    "CompositorPipeline",
    "RenderContext",
    "render",
    "EditingSession",
]
