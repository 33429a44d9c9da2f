# app/services/exceptions.py
from typing import Optional
from fastapi import status


class BatteryError(Exception):
    """Base class for metering failures surfaced to the HTTP layer"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.error
        super().__init__(self.detail)


class InvalidRequest(BatteryError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid request"


class InsufficientBalance(BatteryError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error = "Insufficient battery balance"

    def __init__(self, required: int, available: Optional[int] = None):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient battery balance: {required} BU required")


class UnknownModel(BatteryError):
    """No pricing rule resolves for the model; a configuration error, never billed as free"""
    error = "Unknown model"

    def __init__(self, model: str):
        self.model = model
        super().__init__(f"No battery pricing configured for model '{model}'")


class StorageUnavailable(BatteryError):
    error = "Failed to track usage"
