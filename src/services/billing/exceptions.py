"""
Billing engine exceptions.
"""

from typing import Optional


class BillingEngineError(Exception):
    """Base exception for bonus evaluation errors."""

    pass


class ConfigurationError(BillingEngineError):
    """
    Raised when a bonus definition cannot be evaluated as configured.

    Covers unknown condition patterns, missing descriptor keys, unknown record
    fields and unsupported points patterns. Only the affected bonus is skipped.
    """

    def __init__(self, message: str, bonus_code: Optional[str] = None):
        super().__init__(message)
        self.bonus_code = bonus_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.bonus_code:
            return f"{self.bonus_code}: {message}"
        return message


class DataUnavailableError(BillingEngineError):
    """Raised when the patient or visit history cannot be loaded."""

    pass
