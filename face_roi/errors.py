"""
Exceptions raised by the face ROI detector.

Conditions that are part of normal operation (empty frame, no face,
low score) are not exceptions; they produce an empty result.
"""


class ModelBuildError(RuntimeError):
    """The inference engine rejected the model or its configuration."""


class InferenceError(RuntimeError):
    """A forward pass failed. Fatal to the call, never retried."""


class OutputShapeError(ValueError):
    """Model outputs do not match the anchor table or row layout."""
