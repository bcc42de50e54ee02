"""
E-mail collaborator.

Services depend on the EmailSender interface only:

    await sender.send(user, "password_reset", subject, {"url": reset_url})

SmtpEmailSender is the production implementation. It is built once in the
application lifespan from settings and handed to routes through the
get_email_sender dependency; tests swap in a recording fake.

Delivery errors surface as EmailDeliveryError so callers can compensate
(the forgot-password flow clears the reset token it just stored).
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage

from tourbook.config import Settings
from tourbook.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


TEMPLATES = {
    "welcome": (
        "Hi {first_name},\n\n"
        "Welcome to {app_name}! We're glad to have you.\n"
        "Upload a photo and start exploring tours: {url}\n"
    ),
    "password_reset": (
        "Hi {first_name},\n\n"
        "Forgot your password? Submit a PATCH request with your new password "
        "and password_confirm to: {url}\n"
        "The link is valid for {minutes} minutes.\n"
        "If you didn't forget your password, please ignore this email!\n"
    ),
}


def render(template: str, context: dict) -> str:
    return TEMPLATES[template].format(**context)


class EmailSender(ABC):
    """Deliver one templated message to one user."""

    @abstractmethod
    async def send(self, user, template: str, subject: str, context: dict) -> None:
        """
        Render the template with the context and send it to user.email.

        Raises:
            EmailDeliveryError: If the message could not be handed off.
        """

    async def close(self) -> None:
        """Release transport resources; called on shutdown."""


class SmtpEmailSender(EmailSender):
    """Sends plain-text mail through an SMTP relay."""

    def __init__(self, settings: Settings):
        self.host = settings.EMAIL_HOST
        self.port = settings.EMAIL_PORT
        self.username = settings.EMAIL_USERNAME
        self.password = settings.EMAIL_PASSWORD
        self.use_tls = settings.EMAIL_USE_TLS
        self.from_addr = settings.EMAIL_FROM
        self.app_name = settings.APP_NAME

    def build_message(self, user, template: str, subject: str, context: dict) -> EmailMessage:
        first_name = user.name.split(" ")[0]
        body = render(template, {"first_name": first_name, "app_name": self.app_name, **context})

        message = EmailMessage()
        message["From"] = self.from_addr
        message["To"] = user.email
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send(self, user, template: str, subject: str, context: dict) -> None:
        message = self.build_message(user, template, subject, context)
        try:
            # smtplib blocks; keep the event loop free
            await asyncio.to_thread(self._deliver, message)
        except (OSError, smtplib.SMTPException) as exc:
            logger.error("Sending %r mail to user %s failed: %s", template, user.id, exc)
            raise EmailDeliveryError() from exc
        logger.info("Sent %r mail to user %s", template, user.id)
