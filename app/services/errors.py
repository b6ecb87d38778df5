class ImageServiceError(Exception):
    """Base class for errors reported to the client as ``{"error": message}``."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidParameterError(ImageServiceError, ValueError):
    """A query parameter or transform directive failed validation."""


class ImagesNotFoundError(ImageServiceError):
    status_code = 404


class UploadError(ImageServiceError):
    """Missing, disallowed or oversized upload."""
