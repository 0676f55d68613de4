"""
Pipeline exceptions
"""

from typing import Optional

from fastapi import HTTPException, status


class CallAuditException(Exception):
    """Base exception for the call audit pipeline"""

    def __init__(self, message: str, code: str = "GENERAL_ERROR"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class ValidationError(CallAuditException):
    """Missing or malformed request fields"""

    def __init__(self, message: str = "Request validation failed"):
        super().__init__(message, "VALIDATION_ERROR")


class NotFoundError(CallAuditException):
    """Recording, transcription, analysis or criteria absent"""

    def __init__(self, resource: str = "Resource"):
        message = f"{resource} not found"
        super().__init__(message, "NOT_FOUND")


class UnauthorizedError(CallAuditException):
    """Access guard denial"""

    def __init__(self, message: str = "Not allowed to access this recording"):
        super().__init__(message, "UNAUTHORIZED")


class ConflictError(CallAuditException):
    """Stage is already PROCESSING"""

    def __init__(self, message: str = "Stage is already processing"):
        super().__init__(message, "CONFLICT")


class PreconditionError(CallAuditException):
    """A prior stage has not completed"""

    def __init__(self, message: str = "Pipeline precondition not met"):
        super().__init__(message, "PRECONDITION_FAILED")


class UpstreamServiceError(CallAuditException):
    """Speech-to-text, language-model or delivery call failed or timed out"""

    def __init__(self, message: str = "Upstream service call failed", service: Optional[str] = None):
        self.service = service
        super().__init__(message, "UPSTREAM_SERVICE_ERROR")


class MalformedAnalysisError(CallAuditException):
    """Language-model response failed schema or range validation"""

    def __init__(self, message: str = "Malformed analysis response", raw_payload: Optional[str] = None):
        self.raw_payload = raw_payload
        super().__init__(message, "MALFORMED_ANALYSIS")


class ConfigurationError(CallAuditException):
    """Missing or invalid configuration"""

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message, "CONFIGURATION_ERROR")


STATUS_CODE_MAPPING = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UNAUTHORIZED": status.HTTP_403_FORBIDDEN,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "PRECONDITION_FAILED": status.HTTP_409_CONFLICT,
    "UPSTREAM_SERVICE_ERROR": status.HTTP_502_BAD_GATEWAY,
    "MALFORMED_ANALYSIS": status.HTTP_502_BAD_GATEWAY,
    "CONFIGURATION_ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def call_audit_exception_to_http_exception(exc: CallAuditException) -> HTTPException:
    """Convert a pipeline exception into an HTTPException"""
    status_code = STATUS_CODE_MAPPING.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail={
            "error": True,
            "code": exc.code,
            "message": exc.message,
            "type": type(exc).__name__
        }
    )
