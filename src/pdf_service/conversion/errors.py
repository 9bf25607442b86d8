class ConversionError(Exception):
    """Base class for failures raised while accepting or running a conversion."""


class ValidationError(ConversionError):
    """Rejected upload: missing file, wrong extension or too large."""


class EngineUnavailable(ConversionError):
    """The rendering engine could not be launched."""


class LoadTimeout(ConversionError):
    """Content did not finish loading within the allowed time."""


class LoadError(ConversionError):
    """Content could not be loaded into the engine."""


class RenderError(ConversionError):
    """The engine failed to export the document."""
