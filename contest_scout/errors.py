class ContestScoutError(Exception):
    """Base class for errors raised by contest-scout services."""


class ProviderUnreachableError(ContestScoutError):
    """A provider could not be reached after exhausting retries."""

    def __init__(self, provider: str, attempts: int, reason: str = ""):
        self.provider = provider
        self.attempts = attempts
        self.reason = reason
        message = f"{provider} unreachable after {attempts} attempt(s)"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class AdapterNotRegisteredError(ContestScoutError):
    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"no adapter registered for provider '{provider}'")


class DuplicateContestError(ContestScoutError):
    def __init__(self, provider: str, provider_contest_id: str):
        self.provider = provider
        self.provider_contest_id = provider_contest_id
        super().__init__(f"contest {provider}:{provider_contest_id} already exists")


class NotificationNotFoundError(ContestScoutError):
    def __init__(self, notification_id: str):
        self.notification_id = notification_id
        super().__init__(f"notification '{notification_id}' not found")


class NotificationNotRetryableError(ContestScoutError):
    def __init__(self, notification_id: str, reason: str):
        self.notification_id = notification_id
        super().__init__(f"notification '{notification_id}' cannot be retried: {reason}")


class DependentRecordMissingError(ContestScoutError):
    """A subscriber or contest referenced by a notification no longer exists."""
