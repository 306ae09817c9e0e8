"""Exception taxonomy for canvasgate.

Every error carries a stable ``public_message`` that is safe to show to the
caller. The ``message`` attribute may carry more detail for logs, but never
secret material or raw user content.
"""

from typing import Any, Optional


class GatewayError(Exception):
    """Base exception for all gateway errors."""

    status_code: int = 500
    public_message: str = "An internal error occurred."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        type: Optional[str] = None,
        param: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        self.message = message or self.public_message
        super().__init__(self.message)
        self.type = type or "gateway_error"
        self.param = param
        self.code = code or str(self.status_code)

    def __str__(self) -> str:
        msg = self.message
        if self.type:
            msg = f"{self.type}: {msg}"
        if self.code:
            msg = f"[{self.code}] {msg}"
        return msg

    def to_dict(self, request_id: Optional[str] = None) -> dict[str, Any]:
        """Render the user-facing error envelope."""
        payload: dict[str, Any] = {
            "message": self.public_message,
            "type": self.type,
            "param": self.param,
            "code": self.code,
        }
        if request_id:
            payload["request_id"] = request_id
        return payload


class AuthenticationRequired(GatewayError):
    """No subject identity was presented."""

    status_code = 401
    public_message = "Authentication required. Please sign in to access this resource."

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, type="authentication_required", **kwargs)


class AccessDenied(GatewayError):
    """The subject is known but lacks the required access level."""

    status_code = 403
    public_message = "Access denied."

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message or f"Access denied: {resource_type} {resource_id}",
            type="access_denied",
            **kwargs,
        )
        self.public_message = f"Access denied: {resource_type} {resource_id}"


class ValidationError(GatewayError):
    """Malformed, oversized, or dangerous input."""

    status_code = 400
    public_message = "Invalid input."

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, type="validation_error", param=field, **kwargs)
        self.field = field
        # Validation messages describe the violated constraint, never the value.
        self.public_message = message


class RateLimitExceeded(GatewayError):
    """Too many requests within the current window. Retryable."""

    status_code = 429
    public_message = "Rate limit exceeded. Please wait before making more requests."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, type="rate_limit_exceeded", **kwargs)
        self.retry_after = retry_after


class CredentialNotFound(GatewayError):
    """No usable provider credential could be resolved."""

    status_code = 404
    public_message = "API key not found or access denied"

    def __init__(self, provider: Optional[str] = None, message: Optional[str] = None, **kwargs: Any) -> None:
        self.provider = provider
        if provider and message is None:
            message = f"No {provider} API key found. Please add one in settings."
        super().__init__(message, type="credential_not_found", **kwargs)
        self.public_message = self.message


class NotFoundError(GatewayError):
    """A referenced resource does not exist."""

    status_code = 404
    public_message = "Resource not found"

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, type="not_found", **kwargs)
        self.public_message = self.message


class UpstreamProviderError(GatewayError):
    """Non-2xx or malformed response from an upstream provider."""

    status_code = 502
    public_message = "The AI provider returned an error. Please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        provider: Optional[str] = None,
        upstream_status: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, type="upstream_provider_error", **kwargs)
        self.provider = provider
        self.upstream_status = upstream_status
        self.retry_after = retry_after


class StreamInterrupted(UpstreamProviderError):
    """Transport failure while reading a provider stream."""

    public_message = "The response stream was interrupted. Please try again."

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.type = "stream_interrupted"


class EncryptionError(GatewayError):
    """Raised when encryption or decryption fails."""

    public_message = "Credential could not be processed."

    def __init__(self, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, type="encryption_error", **kwargs)


def map_upstream_status(
    provider: str,
    status_code: int,
    message: str,
    retry_after: Optional[int] = None,
) -> UpstreamProviderError:
    """Map an upstream HTTP status to an UpstreamProviderError.

    Args:
        provider: Provider name
        status_code: HTTP status returned by the provider
        message: Error message extracted from the provider body
        retry_after: Retry-After seconds for 429 responses

    Returns:
        UpstreamProviderError with a code describing the upstream failure
    """
    codes = {
        400: "upstream_bad_request",
        401: "upstream_authentication",
        403: "upstream_permission",
        404: "upstream_not_found",
        429: "upstream_rate_limited",
    }
    if status_code >= 500:
        code = "upstream_unavailable"
    else:
        code = codes.get(status_code, "upstream_error")
    return UpstreamProviderError(
        f"{provider} returned {status_code}: {message}",
        provider=provider,
        upstream_status=status_code,
        retry_after=retry_after if status_code == 429 else None,
        code=code,
    )
