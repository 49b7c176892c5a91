"""Service-layer exceptions and their user-facing notices."""

from typing import Optional


class AirChatError(Exception):
    """Base error carrying the notice shown to the user."""

    status_code: int = 400
    code: str = "error"
    severity: str = "error"
    default_message: str = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_notice(self) -> dict:
        return {"message": self.message, "severity": self.severity, "code": self.code}


class ValidationFailed(AirChatError):
    status_code = 400
    code = "validation_failed"
    severity = "warning"
    default_message = "Please check the submitted values."


class NotFound(AirChatError):
    status_code = 404
    code = "not_found"
    severity = "warning"
    default_message = "Not found."


class Forbidden(AirChatError):
    status_code = 403
    code = "forbidden"
    severity = "warning"
    default_message = "You are not allowed to do that."


class AuthError(AirChatError):
    status_code = 401
    code = "auth_failed"
    default_message = "Authentication failed. Please check your credentials."


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    default_message = "Incorrect email or password."


class AccountExists(AirChatError):
    status_code = 409
    code = "account_exists"
    default_message = "This email is already in use."


class ProviderNotSupported(AirChatError):
    status_code = 400
    code = "provider_not_supported"
    severity = "warning"
    default_message = "This sign-in provider is not supported yet."


# Mic stage transitions rejected from an invalid state.

class StageError(AirChatError):
    status_code = 409
    severity = "warning"


class AlreadySeated(StageError):
    code = "already_seated"
    default_message = "You are already on the mic."


class NotSeated(StageError):
    code = "not_seated"
    default_message = "You are not on the mic."


class StageFull(StageError):
    code = "stage_full"
    default_message = "All mic seats are taken."


class StageConflict(StageError):
    code = "stage_conflict"
    default_message = "The mic seats changed while you were joining. Please retry."


class SeatNotAuthorized(StageError):
    status_code = 403
    code = "seat_not_authorized"
    default_message = "Your role cannot take a mic seat."


class ExternalServiceError(AirChatError):
    status_code = 502
    code = "external_service_failed"
    default_message = "A backing service failed. Please try again."


class AIServiceError(ExternalServiceError):
    code = "ai_failed"
    default_message = "Failed to generate a response. Please try again."
