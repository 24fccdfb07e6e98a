class RenderError(Exception):
    """Base error surfaced by the rendering core."""


class InvalidParamsError(RenderError, ValueError):
    """Render parameters (or the output buffer) were rejected before any work."""


class BackendUnavailableError(RenderError):
    """The selected backend could not be initialised, compiled or dispatched."""
