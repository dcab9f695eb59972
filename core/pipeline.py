# core/pipeline.py
"""
Subscription intake and confirmation pipeline

Runs one submission through a fixed sequence:
1. Insert the subscriber, ignoring an existing row for the same email
2. Read back the subscriber identifier
3. Insert the message
4. Append the email to the audit log (best effort)
5. Send the confirmation mail (best effort)

Steps 1-3 fail fast with StoreError and are not rolled back as a group.
Steps 4-5 never fail the submission; their errors are logged and kept as
advisories on the result.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urlencode

from core.audit_log import AuditLogWriter
from core.errors import AuditLogError, NotifyError, ValidationError
from core.notifier import Notifier
from core.store import SubscriptionStore

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_URL = 'http://localhost:8080/verify'


@dataclass
class Advisory:
    """A best-effort step that did not complete"""
    step: str
    error: str


@dataclass
class SubmissionResult:
    """Outcome of a submission whose store writes all succeeded"""
    email: str
    subscriber_id: int
    message_id: int
    advisories: List[Advisory] = field(default_factory=list)
    
    @property
    def degraded(self) -> bool:
        return bool(self.advisories)
    
    @property
    def acknowledgment(self) -> str:
        return f"Thanks {self.email}! Confirmation sent."


def build_confirmation_link(verify_url: str, email: str) -> str:
    separator = '&' if '?' in verify_url else '?'
    return f"{verify_url}{separator}{urlencode({'email': email})}"


class SubscriptionPipeline:
    """Orchestrates store, audit log and notifier for one submission at a time"""
    
    def __init__(self,
                 store: SubscriptionStore,
                 audit_log: AuditLogWriter,
                 notifier: Notifier,
                 verify_url: Optional[str] = None):
        self.store = store
        self.audit_log = audit_log
        self.notifier = notifier
        self.verify_url = verify_url or DEFAULT_VERIFY_URL
    
    def submit(self, email: str, message: str) -> SubmissionResult:
        """
        Process a subscription with its message
        
        Args:
            email: Subscriber address, used as the natural key
            message: Free-text body stored against the subscriber
        
        Returns:
            SubmissionResult, with advisories for any best-effort step that failed
        
        Raises:
            ValidationError: email or message missing; nothing is written
            StoreError: a persistence step failed; later steps are skipped
        """
        if not isinstance(email, str) or not email or not isinstance(message, str) or not message:
            raise ValidationError("Email and message are required")
        
        # 1. Ensure the subscriber exists
        self.store.upsert_subscriber_ignoring_conflict(email)
        
        # 2. Resolve its identifier
        subscriber_id = self.store.find_subscriber_id(email)
        
        # 3. Persist the message
        message_id = self.store.insert_message(subscriber_id, message)
        
        result = SubmissionResult(email=email, subscriber_id=subscriber_id, message_id=message_id)
        
        # 4. Audit log
        try:
            self.audit_log.append(email)
        except AuditLogError as e:
            logger.warning(f"Audit log append failed for {email}: {e}")
            result.advisories.append(Advisory('audit_log', str(e)))
        
        # 5. Confirmation mail
        link = build_confirmation_link(self.verify_url, email)
        try:
            self.notifier.send(email, link)
        except NotifyError as e:
            logger.warning(f"Confirmation email failed for {email}: {e}")
            result.advisories.append(Advisory('notify', str(e)))
        
        logger.info(f"Subscription processed for {email} "
                    f"(subscriber {subscriber_id}, message {message_id}, "
                    f"{'degraded' if result.degraded else 'complete'})")
        return result
