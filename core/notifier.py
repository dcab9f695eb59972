# core/notifier.py
"""
Confirmation mail delivery over authenticated SMTP
"""

import asyncio
import logging
import uuid
from email.errors import MessageError
from email.mime.text import MIMEText
from email.utils import formatdate
from typing import Optional

import aiosmtplib

from core.errors import NotifyError

logger = logging.getLogger(__name__)

CONFIRMATION_SUBJECT = 'Please verify your email'


class Notifier:
    """
    Sends a plain-text confirmation link to a single recipient
    
    Transport host, sender address and credential are supplied by the
    caller; nothing here reads the environment.
    """
    
    def __init__(self,
                 host: str,
                 port: int = 587,
                 sender: Optional[str] = None,
                 password: Optional[str] = None,
                 timeout: float = 10.0,
                 use_starttls: bool = True,
                 validate_certs: bool = True):
        self.host = host
        self.port = port
        self.sender = sender
        self.password = password
        self.timeout = timeout
        self.use_starttls = use_starttls
        self.validate_certs = validate_certs
    
    def build_message(self, to_address: str, link: str) -> MIMEText:
        msg = MIMEText(f"Click the link to confirm:\n{link}", 'plain', 'utf-8')
        msg['Subject'] = CONFIRMATION_SUBJECT
        msg['From'] = self.sender or ''
        msg['To'] = to_address
        msg['Date'] = formatdate(localtime=True)
        domain = self.sender.rsplit('@', 1)[-1] if self.sender and '@' in self.sender else 'localhost'
        msg['Message-ID'] = f"<{uuid.uuid4()}@{domain}>"
        return msg
    
    def send(self, to_address: str, link: str) -> None:
        """
        Deliver the confirmation message, blocking for at most ``timeout`` seconds
        
        Raises:
            NotifyError: transport not configured, connection or TLS failure,
                timeout, authentication failure, recipient rejection or an
                address that cannot be serialized into a header
        """
        if not self.host or not self.sender:
            raise NotifyError("Mail transport is not configured (SMTP host and sender required)")
        
        try:
            msg = self.build_message(to_address, link)
            asyncio.run(self._async_send(msg))
        except aiosmtplib.SMTPException as e:
            logger.error(f"Email send failed for {to_address}: {e}")
            raise NotifyError(f"SMTP error: {e}") from e
        except (OSError, asyncio.TimeoutError) as e:
            logger.error(f"Email transport unreachable for {to_address}: {e}")
            raise NotifyError(f"Transport error: {e}") from e
        except (MessageError, ValueError) as e:
            logger.error(f"Confirmation message for {to_address!r} could not be built: {e}")
            raise NotifyError(f"Invalid message: {e}") from e
        
        logger.info(f"Email sent to: {to_address}")
    
    async def _async_send(self, msg: MIMEText) -> None:
        implicit_tls = self.port == 465
        await aiosmtplib.send(
            msg,
            hostname=self.host,
            port=self.port,
            username=self.sender if self.password else None,
            password=self.password or None,
            use_tls=implicit_tls,
            start_tls=self.use_starttls and not implicit_tls,
            timeout=self.timeout,
            validate_certs=self.validate_certs,
        )
