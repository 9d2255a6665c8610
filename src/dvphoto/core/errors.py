from __future__ import annotations


class PhotoPipelineError(Exception):
    """Base class for failures that abort a validation or enhancement run."""


class FormatError(PhotoPipelineError):
    """The input bytes could not be decoded as an image."""


class UnsupportedFormatError(FormatError):
    """The input decoded (or was sniffed) as a format the pipeline does not accept."""

    def __init__(self, message: str, detected_format: str | None = None):
        super().__init__(message)
        self.detected_format = detected_format


class InsufficientResolutionError(PhotoPipelineError):
    """The enhancer was asked to produce more pixels than the source has."""

    def __init__(self, shorter_side: int, required: int):
        super().__init__(
            f"Image is too small to enhance: shorter side is {shorter_side}px, "
            f"at least {required}px is required."
        )
        self.shorter_side = shorter_side
        self.required = required


class ValidationTimeoutError(PhotoPipelineError):
    """A validation run exceeded its time budget."""

    def __init__(self, timeout_seconds: float, label: str | None = None):
        what = f"Validation of {label}" if label else "Validation"
        super().__init__(f"{what} did not finish within {timeout_seconds:g}s.")
        self.timeout_seconds = timeout_seconds
        self.label = label
