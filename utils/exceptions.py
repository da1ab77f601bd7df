"""
Domain errors raised by the credential and execution layers.

Each error carries the HTTP status and envelope code it is rendered with by
api.errors.register_error_handlers, so services never import Flask to signal
a failure.
"""
from __future__ import annotations


class TutorError(Exception):
    status = 500
    error = "INTERNAL_ERROR"
    message = "An unexpected error occurred"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class BadRequest(TutorError):
    status = 400
    error = "BAD_REQUEST"
    message = "Bad request"


class Conflict(TutorError):
    # duplicate signup stays a 400 for existing clients
    status = 400
    error = "CONFLICT"
    message = "Username already exists"


class InvalidCredentials(TutorError):
    status = 400
    error = "INVALID_CREDENTIALS"
    message = "Invalid username or password"


class Unauthenticated(TutorError):
    """
    Authentication failure. `reason` is what went wrong and is only logged;
    the response carries the generic message mapped from it.
    """
    status = 401
    error = "UNAUTHENTICATED"
    message = "Unauthorized"

    MESSAGES = {
        "no token": "Access denied. No token provided.",
        "expired": "Token expired. Please refresh your token.",
        "invalid": "Invalid token.",
        "unknown user": "User not found.",
    }

    def __init__(self, reason: str = "invalid"):
        self.reason = reason
        super().__init__(self.MESSAGES.get(reason, self.message))


class NoApiKey(TutorError):
    status = 500
    error = "NO_API_KEY"
    message = "No API key available. Please provide an API key."


class SandboxError(TutorError):
    status = 500
    error = "INTERNAL_ERROR"
    message = "Failed to execute code"


class ChatFailure(TutorError):
    status = 500
    error = "INTERNAL_ERROR"
    message = "Failed to get response"
