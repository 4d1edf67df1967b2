"""
Error types for the image optimizer.

Every ImageUnavailable subclass surfaces to HTTP clients as a plain 404;
the subclasses exist so logs and tests can tell the causes apart.
"""


class ImageUnavailable(Exception):
    """Base error: the requested image variant cannot be served."""

    def __init__(self, identifier, message=None):
        self.identifier = identifier
        super().__init__(message or f"Image not found: {identifier}")


class SourceUnreadable(ImageUnavailable):
    """Source file missing, unreadable, or outside the image directory."""


class DecodeError(SourceUnreadable):
    """Source bytes are not a supported raster image."""


class EncodeFailure(ImageUnavailable):
    """The output encoder rejected the transformed raster."""


class CropOutOfBounds(ImageUnavailable):
    """Crop rectangle lies entirely outside the (resized) image."""


class WorkerPoolSaturated(Exception):
    """Too many transforms queued; the request should be retried later."""
