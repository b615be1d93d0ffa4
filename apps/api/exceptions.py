from fastapi import Request
from fastapi.responses import JSONResponse

class ForgeException(Exception):
    """Base exception for SmartAPIForge API errors."""

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(ForgeException):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} with id '{resource_id}' not found",
            status_code=404,
            details={"resource": resource, "id": resource_id},
        )


class UnauthorizedException(ForgeException):
    """Authentication required or failed (401)."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=401)


class ForbiddenException(ForgeException):
    """User doesn't have permission (403)."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message=message, status_code=403)


class ConflictException(ForgeException):
    """Request conflicts with the current resource state (409)."""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=409)


async def forge_exception_handler(request: Request, exc: ForgeException) -> JSONResponse:
    """Render ForgeException subclasses as JSON error bodies."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "details": exc.details,
            }
        },
    )
