import aiosmtplib
from email.mime.application import MIMEApplication
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from dataclasses import dataclass
from decimal import Decimal
from jinja2 import Template
import logging
from typing import Optional, Sequence

from invgen.core.config import settings
from invgen.services.branding import BrandTheme, DEFAULT_THEME
from invgen.utils.exceptions import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: str


INVOICE_HTML = Template("""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Invoice #{{ invoice_number }}</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            line-height: 1.6;
            color: #333;
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
        }
        .header {
            background: linear-gradient(135deg, {{ primary }}, {{ secondary }});
            color: white;
            padding: 30px;
            border-radius: 12px 12px 0 0;
            text-align: center;
        }
        .content {
            background: #f9fafb;
            padding: 30px;
            border-radius: 0 0 12px 12px;
        }
        .invoice-details {
            background: white;
            padding: 20px;
            border-radius: 8px;
            margin: 20px 0;
            border-left: 4px solid {{ primary }};
        }
        .amount {
            font-size: 24px;
            font-weight: bold;
            color: {{ primary }};
        }
        .footer {
            margin-top: 30px;
            padding-top: 20px;
            border-top: 1px solid #e5e7eb;
            font-size: 14px;
            color: #6b7280;
        }
    </style>
</head>
<body>
    <div class="header">
        <h1 style="margin: 0;">Invoice #{{ invoice_number }}</h1>
        <p style="margin: 10px 0 0 0;">from {{ company_name }}</p>
    </div>
    <div class="content">
        <h2>Hello {{ client_name }},</h2>

        <p>Thank you for your business! Your invoice has been prepared and is attached to this email.</p>

        <div class="invoice-details">
            <p><strong>Invoice Number:</strong> #{{ invoice_number }}</p>
            <p><strong>Amount Due:</strong> <span class="amount">{{ currency }}{{ amount }}</span></p>
            {% if due_date %}<p><strong>Due Date:</strong> {{ due_date }}</p>{% endif %}
        </div>

        <p>If you have any questions about this invoice, please don't hesitate to reach out.</p>

        <div class="footer">
            <p><strong>Best regards,</strong><br>{{ company_name }}</p>
            <p style="font-size: 12px;">This is an automated message. Please do not reply to this email.</p>
        </div>
    </div>
</body>
</html>
""", autoescape=True)

INVOICE_TEXT = Template("""Invoice #{{ invoice_number }} from {{ company_name }}

Hello {{ client_name }},

Thank you for your business! Your invoice has been prepared and is attached to this email.

Invoice Number: #{{ invoice_number }}
Amount Due: {{ currency }}{{ amount }}
{% if due_date %}Due Date: {{ due_date }}
{% endif %}
Best regards,
{{ company_name }}

---
This is an automated message. Please do not reply to this email.
""")

VERIFICATION_HTML = Template("""
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h2>Welcome to {{ app_name }}{% if name %}, {{ name }}{% endif %}!</h2>
    <p>Please click this link to verify your email address:</p>
    <p><a href="{{ link }}">{{ link }}</a></p>
    <p style="color: #6b7280; font-size: 12px;">The link expires in {{ expire_hours }} hours.</p>
</body>
</html>
""", autoescape=True)

VERIFICATION_TEXT = Template("""Welcome to {{ app_name }}{% if name %}, {{ name }}{% endif %}!

Please open this link to verify your email address:
{{ link }}

The link expires in {{ expire_hours }} hours.
""")


class EmailService:
    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.from_email = settings.EMAILS_FROM_EMAIL
        self.from_name = settings.EMAILS_FROM_NAME

    def build_message(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[Sequence[EmailAttachment]] = None,
    ) -> MIMEMultipart:
        body = MIMEMultipart("alternative")
        # Add text version if provided
        if text_content:
            body.attach(MIMEText(text_content, "plain"))
        body.attach(MIMEText(html_content, "html"))

        if not attachments:
            message = body
        else:
            message = MIMEMultipart("mixed")
            message.attach(body)
            for attachment in attachments:
                _, _, subtype = attachment.content_type.partition("/")
                part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
                part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
                message.attach(part)

        message["Subject"] = subject
        message["From"] = f"{self.from_name} <{self.from_email}>"
        message["To"] = to_email
        return message

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        attachments: Optional[Sequence[EmailAttachment]] = None,
    ) -> None:
        """Send an email. Raises MailDeliveryError when the provider does not accept it."""
        message = self.build_message(to_email, subject, html_content, text_content, attachments)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user or None,
                password=self.smtp_password or None,
                use_tls=self.use_tls,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            raise MailDeliveryError(str(e)) from e

        logger.info(f"Email sent successfully to {to_email}")

    def render_invoice_email(
        self,
        invoice_number: str,
        client_name: str,
        amount: Decimal,
        company_name: str,
        due_date: Optional[str] = None,
        theme: BrandTheme = DEFAULT_THEME,
    ) -> RenderedEmail:
        """Render the invoice delivery email."""
        context = dict(
            invoice_number=invoice_number,
            client_name=client_name,
            amount=f"{Decimal(amount):.2f}",
            currency=settings.CURRENCY_SYMBOL,
            company_name=company_name,
            due_date=due_date,
            primary=theme.primary,
            secondary=theme.secondary,
        )
        return RenderedEmail(
            subject=f"Invoice #{invoice_number} from {company_name}",
            html=INVOICE_HTML.render(**context),
            text=INVOICE_TEXT.render(**context),
        )

    def render_verification_email(self, link: str, name: Optional[str] = None) -> RenderedEmail:
        context = dict(
            app_name=settings.EMAILS_FROM_NAME,
            name=name,
            link=link,
            expire_hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS,
        )
        return RenderedEmail(
            subject="Verify your email address",
            html=VERIFICATION_HTML.render(**context),
            text=VERIFICATION_TEXT.render(**context),
        )


def get_email_service() -> EmailService:
    return EmailService()
