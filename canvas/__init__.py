"""
canvas package

Transforms, hit-testing, painters, compositor and the PyQt6 preview
widget for device mockup scenes.
"""

from canvas.background import Background, BackgroundMode, GradientDirection, Pattern
from canvas.cache import TemplateCache, TemplateResult
from canvas.compositor import Compositor, RenderOptions
from canvas.scene import EditorScene
from canvas.view import MockupView

__all__ = [
    "Background",
    "BackgroundMode",
    "GradientDirection",
    "Pattern",
    "TemplateCache",
    "TemplateResult",
    "Compositor",
    "RenderOptions",
    "EditorScene",
    "MockupView",
]
