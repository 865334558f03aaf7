"""Error taxonomy shared by the resolution pipeline and the voice assistant."""


class DesbugueiError(Exception):
    """Base class for every error raised by the core."""


class InvalidQueryError(DesbugueiError):
    """The query normalizes to an empty id."""


class GenerationError(DesbugueiError):
    """The model call failed or returned content that could not be parsed."""


class NotFoundError(DesbugueiError):
    """No record could be produced by any path."""


class StoreUnavailableError(DesbugueiError):
    """The term store could not be reached. Never propagated to callers."""


class SessionError(DesbugueiError):
    """Voice transport failure."""


class ToolArgumentError(DesbugueiError):
    """A tool call arrived with missing or malformed arguments."""
