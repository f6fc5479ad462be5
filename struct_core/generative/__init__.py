# struct_core/generative - Parametric model generators
"""
GENERATIVE: Parametric Building Models
======================================

Turn a few design parameters into a complete, analysable model.

USAGE:
------
    from struct_core.generative import generate_frame_grid, FrameGridParams

    repo = generate_frame_grid(FrameGridParams(nx=6, ny=4, stories=5))
"""

from .frame_grid import FrameGridParams, generate_frame_grid

__all__ = ['FrameGridParams', 'generate_frame_grid']
