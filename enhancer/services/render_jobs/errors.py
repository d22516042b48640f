"""
Error taxonomy of the render job pipeline.

Admission errors are raised synchronously to the submitting caller and no job
is created. Everything after the job handle is returned ends up on the job
record (error_detail) and in a failure alert, never as a raised exception.
"""
from enhancer.services.rendering.base import RenderUnavailable


class RenderPipelineError(Exception):
    """Base class; `code` is a stable machine-readable identifier."""

    code = "pipeline_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class AdmissionError(RenderPipelineError):
    code = "admission_rejected"


class InsufficientCredit(AdmissionError):
    code = "insufficient_credit"


class SourceNotFound(AdmissionError):
    code = "source_not_found"


class AccountNotFound(AdmissionError):
    code = "account_not_found"


class JobNotFound(RenderPipelineError):
    code = "job_not_found"


class JobInProgress(RenderPipelineError):
    code = "job_in_progress"


class SubmissionError(RenderPipelineError):
    code = "submission_failed"


class RenderFailure(RenderPipelineError):
    code = "render_failed"


class RenderTimeout(RenderFailure):
    code = "render_timeout"


class PersistenceError(RenderPipelineError):
    code = "persistence_failed"


# Transient poll failure; retried by the poller within the attempt ceiling.
PollingTransportError = RenderUnavailable
