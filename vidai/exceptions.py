class VidaiError(Exception):
    """Base exception for all vidai errors."""

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class CredentialExpiredError(VidaiError):
    """Raised before any network call once the token's ``exp`` has passed."""


class TransientTransportError(VidaiError):
    """Timeout or connection-level failure. Retried without delay."""


class TransientServerError(VidaiError):
    """Retryable server status (429, 500, 502, 504, 520, 522). Retried with backoff."""


class PermanentRequestError(VidaiError):
    """Any other non-success status. Never retried."""


class ResponseDecodeError(PermanentRequestError):
    """The response body could not be decoded into the expected shape."""


class LocalIOError(VidaiError):
    """Reading, writing or removing a local file failed."""


class OperationCancelled(VidaiError):
    """The caller's cancellation event fired at a wait point."""


class SplicerError(VidaiError):
    """The external media splicer failed."""

    def __init__(self, message: str, code: str, details: str | None = None):
        super().__init__(message, detail=details)
        self.code = code
        self.details = details


class TaskFailedError(VidaiError):
    """Raised when a generation task reaches a terminal status other than SUCCEEDED."""

    retryable = False

    def __init__(
        self,
        message: str,
        task_id: str,
        status: str,
        reason: str | None = None,
        moderation_category: str | None = None,
        detail: str | None = None,
    ):
        super().__init__(message, detail=detail)
        self.task_id = task_id
        self.status = status
        self.reason = reason
        self.moderation_category = moderation_category


class PolicyRejectionError(TaskFailedError):
    """The service rejected the input on content policy grounds. Do not resubmit."""


class TransientTaskError(TaskFailedError):
    """The task failed for a reason that is safe to resubmit."""

    retryable = True
