# core/errors.py
"""
Exception taxonomy for the subscription intake pipeline
"""

from typing import Optional


class SubscriptionError(Exception):
    """Base exception for subscription processing"""
    pass


class ValidationError(SubscriptionError):
    """Caller input is missing or malformed"""
    pass


class StoreError(SubscriptionError):
    """Persistence layer failure, fatal to the current submission"""

    def __init__(self, message: str, step: Optional[str] = None):
        super().__init__(message)
        self.step = step


class AuditLogError(SubscriptionError):
    """Audit log file could not be written or read"""
    pass


class NotifyError(SubscriptionError):
    """Outbound mail transport failure"""
    pass
