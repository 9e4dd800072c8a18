"""
Error taxonomy shared by every layer.

  ValidationError        bad input, rejected before any I/O, never retried
  TransportError         network failure reaching a provider or the remote tier
  ProviderError          non-2xx from a model backend (status + body kept)
  EmptyResponseError     2xx but no usable text (raw body kept)
  AccountRestrictedError credential/project restriction; switch provider or key
  ConfigurationError     credential missing for the selected provider
  BusyError              a session already has a request in flight
"""

from typing import Optional


class EncoreError(Exception):
    """Base class. `kind` is the stable name used in API error bodies."""

    kind = "error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(EncoreError):
    kind = "validation_error"


class EmptyInputError(ValidationError):
    kind = "empty_input"


class NotFoundError(EncoreError):
    kind = "not_found"


class PermissionDeniedError(EncoreError):
    kind = "permission_denied"


class LimitExceededError(EncoreError):
    kind = "limit_exceeded"


class BusyError(EncoreError):
    kind = "busy"


class TransportError(EncoreError):
    kind = "transport_error"


class ProviderError(EncoreError):
    kind = "provider_error"

    def __init__(self, status: int, body: str, provider: Optional[str] = None):
        label = f"{provider} " if provider else ""
        super().__init__(f"{label}API error {status}: {body[:300]}")
        self.status = status
        self.body = body
        self.provider = provider


class EmptyResponseError(EncoreError):
    kind = "empty_response"

    def __init__(self, message: str = "", body: str = ""):
        super().__init__(message)
        self.body = body


class AccountRestrictedError(EncoreError):
    kind = "account_restricted"


class ConfigurationError(EncoreError):
    kind = "configuration_error"
