"""SMTP mailer for quote and follow-up emails.

Bodies are Jinja2 HTML templates from ``aios/templates/emails``. The
blocking SMTP exchange runs in a worker thread.
"""

import asyncio
import logging
import os
import smtplib
from email.message import EmailMessage
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from aios.errors import MailerError

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "emails"


def get_smtp_settings() -> dict[str, Any]:
    """Read SMTP settings from the environment."""
    return {
        "host": os.environ.get("SMTP_HOST", "").strip(),
        "port": int(os.environ.get("SMTP_PORT", "587") or 587),
        "username": os.environ.get("SMTP_USERNAME", "").strip(),
        "password": os.environ.get("SMTP_PASSWORD", ""),
        "sender": os.environ.get("MAIL_FROM", "").strip()
        or os.environ.get("SMTP_USERNAME", "").strip(),
        "use_ssl": os.environ.get("SMTP_SSL", "").strip().lower() in ("1", "true"),
    }


class Mailer:
    """Render and send templated HTML email."""

    def __init__(self, settings: dict[str, Any] | None = None) -> None:
        self._settings = settings or get_smtp_settings()
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=select_autoescape(["html"]),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.get("host") and self._settings.get("sender"))

    def render(self, template: str, context: dict[str, Any]) -> str:
        return self._env.get_template(f"{template}.html").render(**context)

    def _deliver(self, message: EmailMessage) -> None:
        s = self._settings
        smtp_cls = smtplib.SMTP_SSL if s["use_ssl"] else smtplib.SMTP
        with smtp_cls(s["host"], s["port"], timeout=30) as smtp:
            if not s["use_ssl"]:
                smtp.starttls()
            if s["username"]:
                smtp.login(s["username"], s["password"])
            smtp.send_message(message)

    async def send_email(
        self,
        to: str,
        subject: str,
        template: str,
        context: dict[str, Any],
    ) -> None:
        """Send one email.

        Raises:
            MailerError: If SMTP is not configured or delivery fails.
        """
        if not self.is_configured:
            raise MailerError("Email is not configured on the server.")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._settings["sender"]
        message["To"] = to
        message.set_content("This message requires an HTML-capable email client.")
        message.add_alternative(self.render(template, context), subtype="html")

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailerError(f"Failed to send email: {e}") from e
        logger.info("Sent '%s' email to %s", template, to)
