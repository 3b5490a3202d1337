# signfast/utils/email_service.py

import asyncio
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError
from jinja2 import Environment, FileSystemLoader

from signfast.core.config import settings
from signfast.utils.logger import get_logger

logger = get_logger(__name__)

SIGNING_REQUEST_TEMPLATE = "signing_request.html"
DOCUMENT_COMPLETED_TEMPLATE = "document_completed.html"


class EmailService:
    """
    Sends workflow notifications via Amazon SES,
    with Jinja2 templating and attachments.
    """
    def __init__(self):
        self.ses_client = boto3.client(
            "ses",
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            region_name=settings.aws_region,
        )
        self.sender = settings.aws_ses_sender_email

        template_path = Path(__file__).parent.parent / "templates" / "emails"
        self.jinja_env = Environment(loader=FileSystemLoader(template_path), autoescape=True)

    def _render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """Render an HTML email template using Jinja2."""
        try:
            template = self.jinja_env.get_template(template_name)
            return template.render(context)
        except Exception as e:
            logger.error("Error rendering email template", template=template_name, error_message=str(e))
            raise

    def _build_message(
        self,
        to_emails: List[str],
        subject: str,
        html_body: str,
        attachments: Optional[List[Dict[str, Any]]] = None,
    ) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = ", ".join(to_emails)

        msg_body = MIMEMultipart("alternative")
        msg_body.attach(MIMEText(html_body, "html"))
        msg.attach(msg_body)

        for attachment in attachments or []:
            part = MIMEApplication(attachment["data"])
            part.add_header(
                "Content-Disposition",
                "attachment",
                filename=attachment["filename"],
            )
            msg.attach(part)
        return msg

    async def send_templated_email(
        self,
        *,
        to_emails: List[str],
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        attachments: Optional[List[Dict[str, Any]]] = None,
    ):
        """
        Renders an email from a template, and sends it with optional attachments.

        Args:
            to_emails (List[str]): List of recipient email addresses.
            subject (str): Subject of the email.
            template_name (str): Name of the Jinja2 template file.
            context (Dict[str, Any]): Context variables for rendering the template.
            attachments (Optional[List[Dict[str, Any]]]): Each a dict with 'filename' and 'data'.
        """
        if not self.sender:
            logger.error("Email sending is disabled: AWS_SES_SENDER_EMAIL is not configured")
            return

        html_body = self._render_template(template_name, context)
        msg = self._build_message(to_emails, subject, html_body, attachments)

        try:
            # boto3 is synchronous
            await asyncio.to_thread(
                self.ses_client.send_raw_email,
                Source=self.sender,
                Destinations=to_emails,
                RawMessage={"Data": msg.as_string()},
            )
            logger.info("Email sent successfully", subject=subject, to=", ".join(to_emails))
        except ClientError as e:
            logger.error("Failed to send email", subject=subject, error_message=str(e))
            raise

    # --- Workflow notifications ---

    async def send_signing_request(
        self,
        *,
        to_email: str,
        signer_name: Optional[str],
        document_title: str,
        sender_name: str,
        signing_url: str,
    ):
        """Invite a signer to open their signing link."""
        await self.send_templated_email(
            to_emails=[to_email],
            subject=f"eSignature Request: {document_title}",
            template_name=SIGNING_REQUEST_TEMPLATE,
            context={
                "signer_name": signer_name or to_email,
                "document_title": document_title,
                "sender_name": sender_name,
                "signing_url": signing_url,
            },
        )

    async def send_document_completed(
        self,
        *,
        to_email: str,
        recipient_name: Optional[str],
        document_title: str,
        download_url: Optional[str] = None,
        attachment: Optional[bytes] = None,
    ):
        """Tell a party the document is fully signed, attaching the final PDF when available."""
        attachments = None
        if attachment:
            attachments = [{"filename": f"{document_title}-signed.pdf", "data": attachment}]

        await self.send_templated_email(
            to_emails=[to_email],
            subject=f"Document Signed: {document_title}",
            template_name=DOCUMENT_COMPLETED_TEMPLATE,
            context={
                "recipient_name": recipient_name or to_email,
                "document_title": document_title,
                "download_url": download_url,
                "has_attachment": bool(attachments),
            },
            attachments=attachments,
        )


email_service = EmailService()


def get_notifier() -> EmailService:
    """Dependency returning the shared notifier."""
    return email_service
