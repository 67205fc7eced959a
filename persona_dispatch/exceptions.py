# persona_dispatch/exceptions.py
"""Custom exceptions for the persona dispatch subsystem."""

import datetime
import traceback
from typing import Any, Optional


class PersonaDispatchError(Exception):
    """Base exception for all persona dispatch errors with standardized structure."""

    def __init__(
        self,
        message: str,
        error_code: str = "PERSONA_DISPATCH_ERROR",
        details: Optional[dict] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.timestamp = datetime.datetime.now()
        self.original_exception = original_exception
        # format_exc only has something to report while an exception is being handled.
        self.stack_trace = (
            traceback.format_exc() if original_exception else traceback.format_stack()
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to structured dictionary for logging/reporting."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "original_exception_type": type(self.original_exception).__name__
            if self.original_exception
            else None,
            "original_exception_message": str(self.original_exception)
            if self.original_exception
            else None,
            "stack_trace": self.stack_trace,
        }

    def __str__(self):
        return f"{self.error_code}: {self.message}"


class PersonaManagerNotInitializedError(PersonaDispatchError):
    """Raised when a PersonaManager method is used before initialize(store)."""

    def __init__(self, operation: str = "unknown"):
        super().__init__(
            "PersonaManager not initialized - call initialize(store) first",
            error_code="PERSONA_MANAGER_NOT_INITIALIZED",
            details={"operation": operation},
        )


class MissingDefaultPersonaError(PersonaDispatchError):
    """Raised by the router when no default persona is configured.

    This is a broken-seeding condition, not an unmatched message.
    """

    def __init__(self, message: str = "No default persona configured", details: Optional[dict] = None):
        super().__init__(
            message,
            error_code="MISSING_DEFAULT_PERSONA",
            details=details,
        )


class TemplateCatalogError(PersonaDispatchError):
    """Raised when the static template catalog and the generator disagree."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        original_exception: Optional[Exception] = None,
    ):
        super().__init__(
            message,
            error_code="TEMPLATE_CATALOG_ERROR",
            details=details,
            original_exception=original_exception,
        )


class OnboardingValidationError(PersonaDispatchError):
    """Raised when onboarding answers fail validation at the boundary."""

    def __init__(
        self,
        message: str,
        invalid_payload: Any = None,
        details: Optional[dict] = None,
        original_exception: Optional[Exception] = None,
    ):
        full_details = (details or {}).copy()
        full_details["invalid_payload"] = invalid_payload
        super().__init__(
            message,
            error_code="ONBOARDING_VALIDATION_ERROR",
            details=full_details,
            original_exception=original_exception,
        )


class PersonaStoreError(PersonaDispatchError):
    """Raised by store adapters when the backing storage rejects an operation."""

    def __init__(
        self,
        message: str,
        operation: str = "unknown",
        details: Optional[dict] = None,
        original_exception: Optional[Exception] = None,
    ):
        full_details = (details or {}).copy()
        full_details["operation"] = operation
        super().__init__(
            message,
            error_code="PERSONA_STORE_ERROR",
            details=full_details,
            original_exception=original_exception,
        )
