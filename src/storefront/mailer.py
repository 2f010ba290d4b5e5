"""
Outgoing mail over SMTP.
"""

import smtplib
from email.message import EmailMessage
from typing import Dict, Optional, Tuple

from loguru import logger


class Mailer:
    """
    SMTP mail transport.

    Built once at startup from settings and shared read-only by every
    request.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout

    def send_mail(self, from_addr: str, to: str, subject: str, html: str) -> Dict[str, Tuple[int, bytes]]:
        """
        Send an HTML email.

        Args:
            from_addr: Sender address
            to: Recipient address
            subject: Subject line
            html: HTML body

        Returns:
            Refused recipients, as returned by smtplib (empty on success)

        Raises:
            smtplib.SMTPException, OSError: If delivery fails
        """
        message = EmailMessage()
        message["From"] = from_addr
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html, subtype="html")

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.username and self.password:
                smtp.starttls()
                smtp.login(self.username, self.password)
            refused = smtp.send_message(message)

        logger.info(f"Mail sent to {to}: {subject}")
        return refused


def make_a_nice_email(text: str) -> str:
    """Wrap text in the storefront's plain email layout."""
    return f"""
  <div class="email" style="
    border: 1px solid black;
    padding: 20px;
    font-family: sans-serif;
    line-height: 2;
    font-size: 20px;
  ">
    <h2>Hello There!</h2>
    <p>{text}</p>

    <p>😘, The Storefront Team</p>
  </div>
"""
