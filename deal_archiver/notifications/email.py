"""Operator notifications over authenticated SMTP."""

from __future__ import annotations

import asyncio
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from typing import TYPE_CHECKING, Callable, Protocol

from deal_archiver.utils.logging import get_logger

if TYPE_CHECKING:
    from deal_archiver.config.settings import SmtpConfig

logger = get_logger("notifications.email")

# SASL mechanism -> smtplib authobject method
AUTH_METHODS = {
    "LOGIN": "auth_login",
    "PLAIN": "auth_plain",
    "CRAM-MD5": "auth_cram_md5",
}


@dataclass(frozen=True)
class Notification:
    """A plaintext notification for the operator."""

    subject: str
    body: str


class Notifier(Protocol):
    """Anything that can deliver a notification, best-effort."""

    async def send(self, notification: Notification) -> bool: ...


class SmtpNotifier:
    """
    Sends notifications to one fixed address via SMTP submission.

    The session negotiates STARTTLS before authenticating whenever the relay
    advertises it, then authenticates with the configured SASL mechanism.
    Delivery failures are logged here and never raised: ``send`` returns
    False instead.
    """

    def __init__(
        self,
        config: "SmtpConfig",
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    ) -> None:
        """
        Initialize the notifier.

        Args:
            config: SMTP settings
            smtp_factory: Builds the SMTP session (replaced in tests)
        """
        mechanism = config.auth_mechanism.upper()
        if mechanism not in AUTH_METHODS:
            raise ValueError(
                f"Unsupported SMTP auth mechanism {config.auth_mechanism!r}, "
                f"expected one of {sorted(AUTH_METHODS)}"
            )

        self.config = config
        self.mechanism = mechanism
        self._smtp_factory = smtp_factory

    def build_message(self, notification: Notification) -> EmailMessage:
        """Build the RFC 822 message for a notification."""
        message = EmailMessage()
        message["From"] = self.config.from_addr
        message["To"] = self.config.to_addr
        message["Subject"] = notification.subject
        message.set_content(notification.body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        """Run one blocking SMTP session."""
        config = self.config

        with self._smtp_factory(config.server, config.port, timeout=config.timeout) as smtp:
            smtp.ehlo(config.helo_name)

            if smtp.has_extn("starttls"):
                context = ssl.create_default_context()
                smtp.starttls(context=context)
                # Capabilities must be re-read over the encrypted channel
                smtp.ehlo(config.helo_name)

            if config.username:
                smtp.user, smtp.password = config.username, config.password
                smtp.auth(self.mechanism, getattr(smtp, AUTH_METHODS[self.mechanism]))

            smtp.send_message(
                message,
                from_addr=config.from_addr,
                to_addrs=[config.to_addr],
            )

    async def send(self, notification: Notification) -> bool:
        """
        Deliver a notification.

        Args:
            notification: Subject and body to send

        Returns:
            True if the relay accepted the message
        """
        message = self.build_message(notification)

        try:
            await asyncio.to_thread(self._deliver, message)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(
                "email_auth_failed",
                server=self.config.server,
                code=e.smtp_code,
                subject=notification.subject,
            )
            return False
        except (smtplib.SMTPException, OSError) as e:
            logger.error(
                "email_send_failed",
                server=self.config.server,
                error=str(e) or type(e).__name__,
                subject=notification.subject,
            )
            return False

        logger.info(
            "email_sent",
            to=self.config.to_addr,
            subject=notification.subject,
        )
        return True
