# core/audit_log.py
"""
Append-only flat file of subscriber addresses

Secondary record only; the relational store is the source of truth.
"""

import logging
from pathlib import Path
from typing import Union

from core.errors import AuditLogError

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_LOG_PATH = 'subscribers_emails.txt'


class AuditLogWriter:
    """Writes one email address per line to a shared UTF-8 text file"""
    
    def __init__(self, path: Union[str, Path] = DEFAULT_AUDIT_LOG_PATH):
        self.path = Path(path)
    
    def append(self, email: str) -> None:
        try:
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(email + '\n')
        except OSError as e:
            raise AuditLogError(f"Could not append to {self.path}: {e}") from e
        logger.debug(f"Audit log entry written for {email}")
    
    def read(self) -> bytes:
        """Return the raw file contents"""
        try:
            return self.path.read_bytes()
        except OSError as e:
            raise AuditLogError(f"Could not read {self.path}: {e}") from e
