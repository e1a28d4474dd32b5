"""
Error kinds raised by boxkit.

All errors are request-scoped: none of them leaves a `Detector`, its config or
its engine handle in a different state than before the failed call.
"""

from __future__ import annotations


class BoxkitError(Exception):
    """Base error for known detection failures."""


class LayoutMismatch(BoxkitError):
    """Raised when an output buffer does not match the declared layout."""


class InvalidConfig(BoxkitError, ValueError):
    """Raised when a detector configuration cannot be used."""


class InferenceFailure(BoxkitError):
    """Raised when the inference engine fails to load or run a model."""


class InvalidImage(BoxkitError):
    """Raised when an input image cannot be decoded or has the wrong shape."""
