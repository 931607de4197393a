"""Custom exception hierarchy for the circa package."""


class CircaError(Exception):
    """Base exception for all circa errors."""


class ConfigurationError(CircaError):
    """Missing or invalid configuration."""


class ValidationError(CircaError):
    """Failure report cannot be resolved into at least one failed test."""


class StorageError(CircaError):
    """Pattern store backend unreachable, timed out or rejected the query."""


class AnalysisProviderError(CircaError):
    """HTTP or protocol error from the AI analysis provider."""

    def __init__(self, status_code: int, message: str, endpoint: str) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(f"HTTP {status_code} from {endpoint}: {message}")


class AuthenticationError(CircaError):
    """Missing or unknown ingestion API key."""


class QuotaExceededError(CircaError):
    """Project organization has no credits left."""

    def __init__(self, org_id: str) -> None:
        self.org_id = org_id
        super().__init__(f"Недостаточно кредитов у организации {org_id}")
