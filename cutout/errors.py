class CutoutError(Exception):
    """Base class for every error raised by this package."""


class InvalidInputError(CutoutError, ValueError):
    """A precondition on an image, parameter or request value does not hold."""


class ImageDecodeError(CutoutError):
    """The image reference could not be decoded into pixel samples."""


class RemoteServiceError(CutoutError):
    """The remote background-removal service failed or is not configured."""
