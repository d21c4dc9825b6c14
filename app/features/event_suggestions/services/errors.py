"""
Exceptions raised by the event suggestion services.

Only PreferencesMissingError and IngestionFailedError ever reach callers of
get_suggestions(); ranking provider failures are recovered into a degraded
result inside the generation pipeline.
"""


class SuggestionServiceError(Exception):
    """Base exception for suggestion service operations."""

    def __init__(self, message: str, user_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.user_id = user_id
        self.recoverable = recoverable


class PreferencesMissingError(SuggestionServiceError):
    """The user has not completed onboarding, so there is nothing to rank against."""

    def __init__(self, user_id: str):
        super().__init__(
            "User preferences not found. Complete onboarding first.",
            user_id=user_id,
            recoverable=False,
        )


class IngestionFailedError(SuggestionServiceError):
    """The event pool was empty and refreshing it failed."""

    def __init__(self, message: str = "Couldn't refresh events right now. Please try again shortly.",
                 user_id: str | None = None, cause: str | None = None):
        super().__init__(message, user_id=user_id, recoverable=True)
        self.cause = cause
