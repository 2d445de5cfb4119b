from typing import Any, Dict, Optional


class NewsAggregatorError(Exception):
    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


class ConfigurationError(NewsAggregatorError):
    pass


class ValidationError(NewsAggregatorError):
    pass


class ProviderError(NewsAggregatorError):
    def __init__(self, provider: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"[{provider}] {message}",
            error_code="PROVIDER_ERROR",
            details={"provider": provider, **(details or {})}
        )
        self.provider = provider


class RateLimitExceeded(NewsAggregatorError):
    def __init__(self, provider: str, window: str, limit: int, count: int):
        super().__init__(
            message=f"{window} rate limit ({limit}) reached for {provider}: {count} requests",
            error_code="RATE_LIMIT_EXCEEDED",
            details={"provider": provider, "window": window, "limit": limit, "count": count}
        )
        self.provider = provider
        self.window = window


class NotFoundError(NewsAggregatorError):
    def __init__(self, resource: str, resource_id: Any):
        super().__init__(
            message=f"{resource} with ID {resource_id} does not exist",
            error_code="NOT_FOUND",
            details={"resource": resource, "id": resource_id}
        )


class StorageError(NewsAggregatorError):
    pass
