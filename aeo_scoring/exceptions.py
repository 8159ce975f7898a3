"""Custom exceptions for the scoring engine."""


class AeoScoringError(Exception):
    """Base exception for the scoring engine."""

    pass


class LLMError(AeoScoringError):
    """Exception raised when an LLM provider call fails."""

    def __init__(self, provider: str, status_code: int | None, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"{provider} error {status_code}: {message}")


class LLMQuotaError(LLMError):
    """Quota or billing exhaustion. Retrying will not help."""

    pass


class LLMRateLimitError(LLMError):
    """Rate limited by the provider. Safe to retry after a delay."""

    pass


class ConfigurationError(AeoScoringError):
    """Exception raised for configuration errors."""

    pass


class RuleExecutionError(AeoScoringError):
    """Exception raised by a rule that cannot produce a result."""

    def __init__(self, rule_id: str, message: str):
        self.rule_id = rule_id
        self.message = message
        super().__init__(f"Rule {rule_id} failed: {message}")


class ScoringError(AeoScoringError):
    """Raised when scoring fails before any partial result exists."""

    pass


class StoreError(AeoScoringError):
    """Exception raised for persistence failures."""

    pass
