import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Protocol

from loguru import logger

from config import ALERT_FROM_EMAIL, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, SMTP_USERNAME
from schemas.notifications import (
    DeliveryResult,
    NotificationEmailPayload,
    OutgoingEmail,
    Recipient,
)
from services.email_service import EmailContentPipeline


# =======================================
# SECTION: RECIPIENTS
# =======================================

def format_recipient(recipient: Recipient) -> str:
    if recipient.name:
        return f"{recipient.name} <{recipient.email}>"
    return recipient.email


# =======================================
# SECTION: SMTP TRANSPORT
# =======================================

class EmailTransport(Protocol):
    async def send(self, email: OutgoingEmail) -> DeliveryResult:
        ...


class SmtpEmailTransport:
    """
    Multipart (plain text + html alternative) over SMTP with STARTTLS.
    Delivery failures come back as DeliveryResult(success=False); nothing is retried.
    """

    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        username: Optional[str] = SMTP_USERNAME,
        password: Optional[str] = SMTP_PASSWORD,
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    def build_message(self, email: OutgoingEmail) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = email.subject
        msg["From"] = email.sender
        msg["To"] = email.to
        msg["Message-ID"] = make_msgid()
        msg.set_content(email.text)
        msg.add_alternative(email.html, subtype="html")
        return msg

    def send_sync(self, email: OutgoingEmail) -> DeliveryResult:
        msg = self.build_message(email)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[email] SMTP send to {email.to} failed: {e}")
            return DeliveryResult(success=False, error=str(e))

        logger.info(f"[email] sent '{email.subject}' to {email.to}")
        return DeliveryResult(success=True, message_id=msg["Message-ID"])

    async def send(self, email: OutgoingEmail) -> DeliveryResult:
        return await asyncio.to_thread(self.send_sync, email)


# =======================================
# SECTION: DISPATCHER
# =======================================

class NotificationDispatcher:
    """Renders a payload through the content pipeline and hands it to the transport."""

    def __init__(
        self,
        pipeline: EmailContentPipeline,
        transport: EmailTransport,
        from_address: str = ALERT_FROM_EMAIL,
    ):
        self.pipeline = pipeline
        self.transport = transport
        self.from_address = from_address

    async def send(self, recipient: Recipient, payload: NotificationEmailPayload) -> DeliveryResult:
        content = await self.pipeline.build_email_content(payload)
        email = OutgoingEmail(
            sender=self.from_address,
            to=format_recipient(recipient),
            subject=content.subject,
            html=content.html,
            text=content.text,
        )
        return await self.transport.send(email)
