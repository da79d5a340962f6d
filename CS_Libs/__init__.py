"""
CS_Libs - Chroma Studio Library Modules

This package contains core functionality for the Chroma Studio compositor,
organized into specialized sub-packages:

- ImageEditingLib: Settings models and the per-stage image filters
- PipelineLib: Render pipeline, stage cache and editing session
- ServicesLib: Image import, backdrop generation and export encoding
- StoreLib: Settings preset files
"""

__version__ = "0.1.0"
