"""
Report delivery collaborator
"""

import asyncio
import html
import re
import smtplib
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app.core.exceptions import ConfigurationError, UpstreamServiceError
from app.core.logging import service_logger


@dataclass
class DeliveryResult:
    """Outcome of a report delivery"""
    destination: str
    subject: str
    message_id: str
    sent_at: datetime


class ReportingClient(ABC):
    """Sends rendered reports"""

    @abstractmethod
    async def send_report(self, destination_email: str, subject: str, html_body: str) -> DeliveryResult:
        """
        Send a report

        Raises:
            UpstreamServiceError: delivery failed
        """
        pass


class SMTPReportingClient(ReportingClient):
    """SMTP delivery, run in the default executor"""

    def __init__(self, host: Optional[str], port: int = 587, username: Optional[str] = None,
                 password: Optional[str] = None, use_tls: bool = True,
                 from_email: str = "noreply@example.com", timeout: float = 30):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.timeout = timeout

    def _send(self, destination_email: str, subject: str, html_body: str) -> DeliveryResult:
        if not self.host:
            raise ConfigurationError("SMTP host is not configured")

        message_id = f"<{uuid.uuid4()}@callaudit>"
        msg = MIMEMultipart('alternative')
        msg['From'] = self.from_email
        msg['To'] = destination_email
        msg['Subject'] = subject
        msg['Message-ID'] = message_id
        msg.attach(MIMEText(html_to_text(html_body), 'plain', 'utf-8'))
        msg.attach(MIMEText(html_body, 'html', 'utf-8'))

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)

        return DeliveryResult(
            destination=destination_email,
            subject=subject,
            message_id=message_id,
            sent_at=datetime.now()
        )

    async def send_report(self, destination_email: str, subject: str, html_body: str) -> DeliveryResult:
        service_logger.info(f"Sending report '{subject}' -> {destination_email}")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self._send, destination_email, subject, html_body)
        except (smtplib.SMTPException, OSError) as e:
            service_logger.error(f"Report delivery to {destination_email} failed: {e}")
            raise UpstreamServiceError(f"Report delivery failed: {e}", service="smtp") from e


def create_reporting_client(settings) -> ReportingClient:
    return SMTPReportingClient(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        from_email=settings.smtp_from_email
    )


def html_to_text(html_body: str) -> str:
    """Crude plain-text alternative for mail clients without HTML"""
    text = re.sub(r"<(br|/p|/li|/h[1-6]|/tr)\s*/?>", "\n", html_body, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(re.sub(r"\n{3,}", "\n\n", text)).strip()


def _list_items(items) -> str:
    if not items:
        return "<p>None recorded.</p>"
    return "<ul>" + "".join(f"<li>{html.escape(str(item))}</li>" for item in items) + "</ul>"


def _score(value) -> str:
    return "n/a" if value is None else f"{value:g}"


def render_report_html(recording, analysis, scorecard=None) -> str:
    """Render the quality report of a completed analysis"""
    rows = [
        ("Customer service", analysis.customer_service),
        ("Product knowledge", analysis.product_knowledge),
        ("Communication skills", analysis.communication_skills),
        ("Compliance adherence", analysis.compliance_adherence),
    ]
    score_rows = "".join(
        f"<tr><td>{label}</td><td>{_score(value)}</td></tr>" for label, value in rows
    )

    moments = [
        f"{m.get('timestamp', '')}: {m.get('description', '')}" for m in (analysis.key_moments or [])
    ]

    parts = [
        f"<h1>Call quality report: {html.escape(recording.title)}</h1>",
        f"<p>{html.escape(analysis.summary or '')}</p>",
        "<h2>Scores</h2>",
        f"<table><tr><td>Model overall</td><td>{_score(analysis.overall_score)}</td></tr>{score_rows}</table>",
    ]

    if scorecard is not None:
        parts.append(f"<h2>Weighted score: {_score(scorecard.overall_score)}</h2>")
        missed = [p for p, hit in (scorecard.required_phrases or {}).items() if not hit]
        violated = [p for p, bad in (scorecard.prohibited_phrases or {}).items() if bad]
        if missed:
            parts.append("<h3>Missing required phrases</h3>" + _list_items(missed))
        if violated:
            parts.append("<h3>Prohibited phrases used</h3>" + _list_items(violated))

    parts.extend([
        "<h2>Strengths</h2>", _list_items(analysis.strengths),
        "<h2>Areas for improvement</h2>", _list_items(analysis.improvements),
        "<h2>Key moments</h2>", _list_items(moments),
        "<h2>Recommendations</h2>", _list_items(analysis.recommendations),
    ])

    return "<html><body>" + "\n".join(parts) + "</body></html>"
