import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from hndigest.config import SmtpConfig
from hndigest.errors import DeliveryError
from hndigest.models import DigestEntry
from hndigest.senders.formatting import digest_to_html, digest_to_text

logger = logging.getLogger(__name__)


class EmailSender:
    """Send the whole digest as one multipart (text + HTML) email."""

    def __init__(self, config: SmtpConfig, timeout: float = 30):
        self.config = config
        self.timeout = timeout

    def build_message(self, digest: list[DigestEntry]) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self.config.sender
        msg["To"] = self.config.to
        msg["Subject"] = self.config.subject
        msg.attach(MIMEText(digest_to_text(digest), "plain", "utf-8"))
        msg.attach(MIMEText(digest_to_html(digest, heading=self.config.subject), "html", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.config.use_ssl:
            return smtplib.SMTP_SSL(self.config.host, self.config.port, timeout=self.timeout)
        server = smtplib.SMTP(self.config.host, self.config.port, timeout=self.timeout)
        if self.config.use_tls:
            server.starttls()
        return server

    def send(self, digest: list[DigestEntry]) -> int:
        if not digest:
            return 0

        msg = self.build_message(digest)
        try:
            with self._connect() as server:
                server.login(self.config.username, self.config.password)
                server.sendmail(self.config.sender, [self.config.to], msg.as_string())
        except smtplib.SMTPAuthenticationError as e:
            logger.error("Email authentication failed - check credentials")
            raise DeliveryError(f"SMTP authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP error: {e}")
            raise DeliveryError(f"Could not send email: {e}") from e

        logger.info(f"  Email sent to {self.config.to} ({len(digest)} items)")
        return len(digest)
