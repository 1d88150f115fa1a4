"""
Notification Service

Sends build-ready emails to submitters.
Supports:
- SMTP delivery with STARTTLS, run in a worker thread
- Fire-and-forget dispatch that never blocks or fails the request
- Draining pending deliveries at shutdown
"""

import asyncio
import html
import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Optional, Protocol

from appbuilder.config import Settings
from appbuilder.errors import NotificationError

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Anything that can deliver a formatted message to an address."""

    async def send(self, to: str, subject: str, html_body: str) -> None:
        ...


class EmailSender:
    """SMTP email sender."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender_name: str = "Web to App Builder",
        use_tls: bool = True,
        timeout: float = 20.0,
        enabled: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender_name = sender_name
        self.use_tls = use_tls
        self.timeout = timeout
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailSender":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            sender_name=settings.sender_name,
            use_tls=settings.smtp_use_tls,
            timeout=settings.smtp_timeout_seconds,
            enabled=settings.email_enabled,
        )

    async def send(self, to: str, subject: str, html_body: str) -> None:
        """
        Send an HTML email.

        Args:
            to: Recipient address
            subject: Subject line
            html_body: HTML body; a plain text part is derived from it

        Raises:
            NotificationError: If the SMTP exchange fails
        """
        if not self.enabled:
            logger.info(f"Email disabled, not sending '{subject}' to {to}")
            return
        if not self.username or not self.password:
            logger.warning(f"SMTP credentials not configured, not sending '{subject}' to {to}")
            return

        message = self._build_message(to, subject, html_body)
        try:
            await asyncio.to_thread(self._send_smtp, to, message)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Failed to send email to {to}: {e}") from e

        logger.info(f"Email sent to {to}")

    def _build_message(self, to: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.sender_name} <{self.username}>"
        msg["To"] = to

        text_body = re.sub(r"<[^<]+?>", "", html_body.replace("</p>", "\n"))
        msg.attach(MIMEText(html.unescape(text_body).strip(), "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _send_smtp(self, to: str, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            server.login(self.username, self.password)
            server.send_message(message, to_addrs=[to])


class NotificationDispatcher:
    """Runs notification sends as detached tasks.

    Failures are logged by a done callback and never reach the caller.
    """

    def __init__(self, sender: NotificationSender):
        self.sender = sender
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, to: str, subject: str, html_body: str) -> asyncio.Task:
        """Schedule a send and return immediately."""
        task = asyncio.create_task(self.sender.send(to, subject, html_body))
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            logger.warning("Notification task cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Notification delivery failed: {error}")

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight sends, cancelling whatever is left after ``timeout``."""
        if not self._pending:
            return
        done, not_done = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in not_done:
            task.cancel()
        if not_done:
            logger.warning(f"Cancelled {len(not_done)} pending notification(s)")


def _app_label(record: Any) -> str:
    return html.escape(record.app_name or record.package_name)


def build_ready_email(record: Any, link: str, updated: bool = False) -> tuple[str, str]:
    """Subject and body announcing a new stub APK."""
    label = _app_label(record)
    package = html.escape(record.package_name)
    href = html.escape(link, quote=True)

    if updated:
        version = html.escape(record.version_name or "")
        subject = f"{record.app_name or record.package_name} Updated (v{record.version_name or ''})"
        body = (
            f"<p>Your app {label} has been updated successfully (v{version}).</p>"
            f"<p><b>Package:</b> {package}</p>"
            f'<p><a href="{href}">Download Latest APK</a></p>'
        )
    else:
        subject = f"{record.app_name or record.package_name} Build Ready"
        body = (
            f"<p>Your APK for {label} is ready for download!</p>"
            f"<p><b>Package:</b> {package}</p>"
            f'<p><a href="{href}" download>Download APK</a></p>'
        )
    return subject, body


def aab_ready_email(record: Any, link: str) -> tuple[str, str]:
    """Subject and body announcing a paid AAB."""
    subject = f"{record.app_name or record.package_name} AAB Build Ready"
    body = (
        "<p>Payment verified successfully!</p>"
        f"<p><b>Package:</b> {html.escape(record.package_name)}</p>"
        f'<p><a href="{html.escape(link, quote=True)}" download>Download AAB</a></p>'
    )
    return subject, body
