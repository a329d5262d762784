"""
Outbound email with transport fallback.

The transport is selected once at startup, in order of preference:

1. Explicit SMTP server (SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS)
2. Gmail with an app password (GMAIL_USER, GMAIL_PASSWORD)
3. Mock transport that only logs the message

Each real transport is verified by connecting and logging in before it is
used. Until selection has run, the mock transport is in place so callers can
always send.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import Optional

import aiosmtplib

from .server_utils import ApiError, make_iso_timestamp, mask_email
from .logging_utils import get_logger

logger = get_logger(__name__)

SMTP_VERIFY_TIMEOUT = 10.0
GMAIL_VERIFY_TIMEOUT = 15.0
GMAIL_HOST = 'smtp.gmail.com'
GMAIL_PORT = 465

SEND_ERRORS = (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError)


class MailTransport(ABC):
    """Strategy for delivering a composed message."""

    name = 'abstract'

    @abstractmethod
    async def verify(self) -> bool:
        """Return True if the transport can deliver mail."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> str:
        """Deliver the message and return its message id."""


class MockTransport(MailTransport):
    """Transport that logs messages instead of sending them."""

    name = 'mock'

    async def verify(self) -> bool:
        return True

    async def send(self, message: EmailMessage) -> str:
        logger.info(
            f"[MOCK EMAIL] to={message['To']} subject={message['Subject']} "
            f"timestamp={make_iso_timestamp()}"
        )
        return f"mock-{int(time.time() * 1000)}"


class SMTPTransport(MailTransport):
    """Transport for an SMTP server with authentication."""

    name = 'smtp'

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        use_ssl: bool = False,
        timeout: float = SMTP_VERIFY_TIMEOUT,
        name: Optional[str] = None
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_ssl = use_ssl
        self.timeout = timeout
        if name:
            self.name = name

    async def _connect(self) -> aiosmtplib.SMTP:
        # Implicit TLS, or STARTTLS whenever the server offers it
        smtp = aiosmtplib.SMTP(
            hostname=self.host,
            port=self.port,
            use_tls=self.use_ssl,
            start_tls=False if self.use_ssl else None,
            timeout=self.timeout
        )
        await smtp.connect()
        try:
            await smtp.login(self.username, self.password)
        except aiosmtplib.SMTPException:
            smtp.close()
            raise
        return smtp

    @staticmethod
    async def _quit(smtp: aiosmtplib.SMTP) -> None:
        try:
            await smtp.quit()
        except aiosmtplib.SMTPException:
            smtp.close()

    async def verify(self) -> bool:
        try:
            smtp = await self._connect()
        except SEND_ERRORS as e:
            logger.warning(f"{self.name} transport verification failed for {mask_email(self.username)}: {e}")
            return False
        await self._quit(smtp)
        return True

    async def send(self, message: EmailMessage) -> str:
        smtp = await self._connect()
        try:
            await smtp.send_message(message)
        finally:
            await self._quit(smtp)
        return message['Message-ID']


async def select_transport(settings) -> MailTransport:
    """
    Pick the first working transport for the given settings.

    Args:
        settings: Application settings

    Returns:
        Verified SMTP or Gmail transport, or the mock transport
    """
    if settings.smtp_configured:
        logger.info(f"Attempting SMTP transport to {settings.SMTP_HOST}")
        transport = SMTPTransport(
            settings.SMTP_HOST,
            settings.SMTP_PORT,
            settings.SMTP_USER,
            settings.SMTP_PASS,
            use_ssl=settings.SMTP_SECURE,
            timeout=SMTP_VERIFY_TIMEOUT
        )
        if await transport.verify():
            logger.info(f"SMTP transporter ready ({mask_email(settings.SMTP_USER)})")
            return transport
        logger.warning(f"SMTP transporter verification failed for {mask_email(settings.SMTP_USER)}")

    if settings.gmail_configured:
        if ' ' in settings.GMAIL_PASSWORD:
            logger.warning(
                "GMAIL_PASSWORD contains spaces - ensure you use a 16-character App Password without spaces"
            )
        logger.info(f"Attempting Gmail transport for {mask_email(settings.GMAIL_USER)}")
        transport = SMTPTransport(
            GMAIL_HOST,
            GMAIL_PORT,
            settings.GMAIL_USER,
            settings.GMAIL_PASSWORD,
            use_ssl=True,
            timeout=GMAIL_VERIFY_TIMEOUT,
            name='gmail'
        )
        if await transport.verify():
            logger.info(f"Gmail transporter ready ({mask_email(settings.GMAIL_USER)})")
            return transport
        logger.warning(
            "Gmail transporter verification failed. Confirm the App Password is correct and that 2FA is enabled"
        )

    logger.info(
        "Using mock email service. To enable real email set SMTP_* or GMAIL_USER/GMAIL_PASSWORD"
    )
    return MockTransport()


class MailService:
    """Composes messages and hands them to the selected transport."""

    def __init__(self, transport: MailTransport, sender: str = ''):
        self.transport = transport
        self.sender = sender or 'no-reply@localhost'

    async def send_mail(self, to: str, subject: str, text: str, html: Optional[str] = None) -> dict:
        """
        Send a message.

        Args:
            to: Recipient address
            subject: Subject line
            text: Plain text body
            html: Optional HTML alternative

        Returns:
            Dict with success flag and message id

        Raises:
            ApiError: If the transport fails to deliver
        """
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message['Date'] = formatdate(localtime=True)
        message['Message-ID'] = make_msgid()
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype='html')

        try:
            message_id = await self.transport.send(message)
        except SEND_ERRORS as e:
            logger.error(f"Failed to send email to {mask_email(to)} via {self.transport.name}: {e}")
            raise ApiError(f"Failed to send email: {e}", status_code=502) from e

        logger.info(f"Sent email '{subject}' to {mask_email(to)} via {self.transport.name}")
        return {'success': True, 'messageId': message_id}

    async def send_registration_email(self, to: str, username: str) -> dict:
        """Send the welcome message to a newly registered user."""
        subject = "Welcome to Chronicle"
        text = (
            f"Hi {username},\n\n"
            "Your account has been created. You can now start writing and publishing blogs.\n\n"
            "Happy writing!\n"
        )
        html = (
            f"<p>Hi {username},</p>"
            "<p>Your account has been created. You can now start writing and publishing blogs.</p>"
            "<p>Happy writing!</p>"
        )
        return await self.send_mail(to, subject, text, html)


# Singleton instance
_mail_service: Optional[MailService] = None
_mail_service_lock = threading.Lock()


async def init_mail_service(settings) -> MailService:
    """Select the transport and install the process-wide mail service."""
    global _mail_service
    transport = await select_transport(settings)
    sender = settings.MAIL_FROM or settings.SMTP_USER or settings.GMAIL_USER
    service = MailService(transport, sender=sender)
    with _mail_service_lock:
        _mail_service = service
    return service


def get_mail_service() -> MailService:
    """Get the process-wide mail service (mock transport until initialized)."""
    global _mail_service
    with _mail_service_lock:
        if _mail_service is None:
            _mail_service = MailService(MockTransport())
        return _mail_service
