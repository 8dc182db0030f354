"""Error taxonomy for API description resolution.

Skipped (unannotated or hidden) entities are not errors and never raise;
they surface as the ``EXCLUDED`` outcome instead.
"""


class ResolutionError(Exception):
    """Base class for failures attributed to a single operation, root or model."""

    kind = "ResolutionError"

    def __init__(self, message: str, subject: str = ""):
        super().__init__(message)
        self.subject = subject


class ModelConflict(ResolutionError):
    """Two unrelated declarations of the same member disagree on its type."""

    kind = "ModelConflict"


class ExtensionFailure(ResolutionError):
    """A registered extension raised while resolving a parameter or property."""

    kind = "ExtensionFailure"


class MalformedMetadata(ResolutionError):
    """An annotation is present but internally inconsistent."""

    kind = "MalformedMetadata"


class UnresolvableType(ResolutionError):
    """A type reference names a type the registry cannot describe."""

    kind = "UnresolvableType"
