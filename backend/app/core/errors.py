from __future__ import annotations


class PipelineError(Exception):
    """Base error for the composite pipeline.

    `user_message` is stable and safe to show to end users; the raw collaborator
    error is kept as `__cause__` (raise ... from exc) and in `detail`.
    """

    user_message = "Image synthesis failed."
    fatal = True

    def __init__(self, detail: str = "", *, user_message: str | None = None):
        self.detail = detail
        if user_message:
            self.user_message = user_message
        super().__init__(detail or self.user_message)


class AssetLoadError(PipelineError):
    user_message = "An input image could not be loaded. Please check the image and try again."


class MatteExtractionError(PipelineError):
    user_message = "The product could not be separated from its background."


class FontTimeoutError(PipelineError):
    user_message = "The requested font was not available in time; a fallback font was used."
    fatal = False


class CompositingError(PipelineError):
    user_message = "The final image could not be composed."
