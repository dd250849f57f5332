"""
Domain exceptions

Every failure the generation backend reports carries a stable error code and
the HTTP status the API layer answers with.
"""
from enum import Enum
from typing import Any, List, Optional


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    TOKEN_INVALID = "TOKEN_INVALID"
    ACCOUNT_DISABLED = "ACCOUNT_DISABLED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    TASK_NOT_FOUND = "TASK_NOT_FOUND"
    IMAGE_NOT_FOUND = "IMAGE_NOT_FOUND"
    TASK_ALREADY_TERMINAL = "TASK_ALREADY_TERMINAL"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    QUEUE_FULL = "QUEUE_FULL"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"

    # Recorded on failed tasks
    GENERATION_FAILED = "IMAGE_GENERATION_FAILED"
    IMAGE_CONVERSION_FAILED = "IMAGE_CONVERSION_FAILED"
    INVALID_IMAGE = "INVALID_IMAGE"
    STORAGE_ERROR = "STORAGE_ERROR"
    PRODUCER_TIMEOUT = "PRODUCER_TIMEOUT"
    INTERRUPTED = "INTERRUPTED"


class GenerationError(Exception):
    """Base class for errors surfaced to API callers"""
    error_code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR
    http_status: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[List[Any]] = None):
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)


class InvalidInput(GenerationError, ValueError):
    """Malformed request input, reported with the offending field"""
    error_code = ErrorCode.VALIDATION_ERROR
    http_status = 400
    default_message = "Invalid input"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        details = [{"field": field, "message": message}] if field else None
        super().__init__(message, details)


class InsufficientFunds(GenerationError):
    error_code = ErrorCode.INSUFFICIENT_BALANCE
    http_status = 402
    default_message = "Insufficient credits"

    def __init__(self, required: int, balance: Optional[int] = None):
        self.required = required
        self.balance = balance
        super().__init__(f"Insufficient credits: {required} required")


class AuthenticationRequired(GenerationError):
    error_code = ErrorCode.TOKEN_INVALID
    http_status = 401
    default_message = "Missing or invalid access token"


class AccountDisabled(GenerationError):
    error_code = ErrorCode.ACCOUNT_DISABLED
    http_status = 403
    default_message = "Account is disabled"


class AccessDenied(GenerationError):
    error_code = ErrorCode.PERMISSION_DENIED
    http_status = 403
    default_message = "Access to this task is not allowed"


class NotTaskOwner(AccessDenied):
    default_message = "Only the task owner can do this"


class AccountNotFound(GenerationError):
    error_code = ErrorCode.USER_NOT_FOUND
    http_status = 404
    default_message = "Account not found"


class TaskNotFound(GenerationError):
    error_code = ErrorCode.TASK_NOT_FOUND
    http_status = 404
    default_message = "Task not found"


class ArtifactNotFound(GenerationError):
    error_code = ErrorCode.IMAGE_NOT_FOUND
    http_status = 404
    default_message = "Image not found"


class TaskAlreadyTerminal(GenerationError):
    error_code = ErrorCode.TASK_ALREADY_TERMINAL
    http_status = 409
    default_message = "Task is already completed, failed or cancelled"


class UploadTooLarge(GenerationError):
    error_code = ErrorCode.FILE_TOO_LARGE
    http_status = 413
    default_message = "Uploaded file is too large"


class TaskQueueFull(GenerationError):
    error_code = ErrorCode.QUEUE_FULL
    http_status = 503
    default_message = "Generation queue is full, try again later"


class ProducerError(GenerationError):
    """
    Raised by artifact producers

    Never surfaced synchronously: the orchestrator records it on the task.
    """
    error_code = ErrorCode.GENERATION_FAILED
    default_message = "Image generation failed"

    def __init__(self, message: Optional[str] = None, error_code: Optional[ErrorCode] = None):
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code


class StorageError(ProducerError):
    error_code = ErrorCode.STORAGE_ERROR
    default_message = "Storage write failed"
