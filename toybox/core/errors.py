# toybox/core/errors.py


class ToyboxError(Exception):
    """Base class for every error raised by the packaging core."""


class NotFound(ToyboxError, LookupError):
    """Unknown package, revision or content blob."""


class ValidationError(ToyboxError, ValueError):
    """Stored metadata cannot be rendered into a legacy wire format."""


class StorageError(ToyboxError):
    """The snapshot store or the blob store failed."""


class EncodeCancelled(ToyboxError):
    """The caller went away while an archive was being assembled."""
