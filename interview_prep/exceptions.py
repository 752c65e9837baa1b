"""Domain-specific exceptions for the interview prep pipeline."""


class PrepPipelineError(Exception):
    """Base exception for interview prep pipeline errors."""


class StageTimeoutError(PrepPipelineError, TimeoutError):
    """Raised when an awaited operation does not settle before its deadline."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StreamTimeoutError(StageTimeoutError):
    """Raised when a generation stream fails to open or stalls between chunks."""

    def __init__(self, message: str, phase: str) -> None:
        self.phase = phase
        super().__init__(message)


class ProviderError(PrepPipelineError):
    """Raised by provider adapters when the generation service answers with an HTTP failure."""

    def __init__(self, status_code: int | None, reason: str) -> None:
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Provider request failed ({status_code}): {reason}")


class SynthesisError(PrepPipelineError):
    """Raised when every requested synthesis sub-task fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Failed to synthesize interview strategy: {reason}")


class RateLimitExceededError(PrepPipelineError):
    """Raised when a caller exceeds its request quota."""

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Retry after {retry_after:.0f}s.")


class ServiceDisabledError(PrepPipelineError):
    """Raised when the service has been switched off by an administrator."""

    def __init__(self) -> None:
        super().__init__("Service is currently disabled.")


class ConfigurationError(PrepPipelineError):
    """Raised when required configuration such as credentials is missing."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid service configuration: {reason}")


class BackendError(PrepPipelineError):
    """Raised by backend clients when a stage request fails."""

    def __init__(self, action: str, status_code: int | None, reason: str = "") -> None:
        self.action = action
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Backend action '{action}' failed ({status_code}): {reason}".rstrip(": "))
