"""Email (SMTP) notifier for check state changes."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from ..checks.router import StateChangeNotification
from ..config import settings
from .base import NotificationError
from .slack import check_title

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Email sink. Recipients come from the check's email list."""

    def __init__(
        self,
        smtp_host: str = "",
        from_address: str = "",
        *,
        smtp_port: int | None = None,
        smtp_user: str = "",
        smtp_password: str = "",
        use_tls: bool | None = None,
        base_url: str = "",
    ) -> None:
        self.smtp_host = smtp_host or settings.smtp_host
        self.smtp_port = smtp_port or settings.smtp_port
        self.smtp_user = smtp_user or settings.smtp_user
        self.smtp_password = smtp_password or settings.smtp_password
        self.use_tls = settings.smtp_use_tls if use_tls is None else use_tls
        self.from_address = from_address or settings.email_from
        self.base_url = (base_url or settings.base_url).rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.smtp_host)

    def build_message(self, n: StateChangeNotification) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = check_title(n.state, n.check)
        msg["From"] = self.from_address
        msg["To"] = ", ".join(n.check.split_emails())

        lines = [
            f"State: {n.previous_state or 'none'} -> {n.state}",
            f"Rows: {n.row_count}",
        ]
        if n.message:
            lines.append(f"Message: {n.message}")
        lines.append(f"View: {self.base_url}/queries/{n.check.query_id}")

        if n.columns and n.sample_rows:
            lines.append("")
            lines.append(" | ".join(n.columns))
            for row in n.sample_rows:
                lines.append(" | ".join("" if v is None else str(v) for v in row))
            if n.row_count > len(n.sample_rows):
                lines.append(f"... {n.row_count - len(n.sample_rows)} more")

        msg.set_content("\n".join(lines) + "\n")
        return msg

    def state_change(self, notification: StateChangeNotification) -> None:
        recipients = notification.check.split_emails()
        if not recipients:
            return
        if not self.enabled:
            logger.debug("Email: skipping send (no SMTP host)")
            return

        msg = self.build_message(notification)
        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg, from_addr=self.from_address, to_addrs=recipients)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(f"Email to {', '.join(recipients)} failed: {e}") from e

        logger.info("Email: sent check %s state change to %d recipients",
                    notification.check.id, len(recipients))
