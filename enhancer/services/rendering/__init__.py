"""
Render providers behind a single client interface.
"""
from .base import (
    RenderClient,
    RenderError,
    RenderRejected,
    RenderSpec,
    RenderState,
    RenderStatus,
    RenderUnavailable,
)
from .factory import RenderClientFactory

__all__ = [
    "RenderClient",
    "RenderError",
    "RenderRejected",
    "RenderSpec",
    "RenderState",
    "RenderStatus",
    "RenderUnavailable",
    "RenderClientFactory",
]
