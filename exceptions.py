"""
Exceptions raised by the video pipeline.
Routers translate them into HTTP errors; the reconciler turns them into a Failed status.
"""


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class GenerationError(PipelineError):
    """A call to the AI generation service failed or returned garbage."""


class CreationFailed(PipelineError):
    """A video could not be submitted. Nothing was persisted."""


class ReconciliationFailed(PipelineError):
    """An in-flight video cannot complete and has to be marked Failed."""


class OperationExpired(ReconciliationFailed):
    """The render operation outlived its time-to-live before finishing."""


class NotFound(PipelineError):
    """The requested record does not exist."""


class InvalidState(PipelineError):
    """The record is not in a state that allows the requested action."""


class UploadFailed(PipelineError):
    """The remote video platform rejected or never received the upload."""
