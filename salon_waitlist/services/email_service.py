"""
Email Service with SendGrid Integration
Renders waitlist notification emails and hands them to SendGrid
"""

import asyncio
import logging
from typing import Dict, Optional

from jinja2 import Template
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from salon_waitlist.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Service for handling email operations"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        api_key = settings.SENDGRID_API_KEY if api_key is None else api_key
        self.client = SendGridAPIClient(api_key) if api_key else None
        self.from_email = from_email or settings.FROM_EMAIL
        self.templates = self._load_templates()

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _load_templates(self) -> Dict[str, Template]:
        """Load email templates"""
        return {
            "appointment_available": Template("""
                <!DOCTYPE html>
                <html>
                <body>
                    <div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
                        <h2>{{ subject }}</h2>
                        <p>{{ body }}</p>
                        {% if appointment_id %}
                        <p><strong>Appointment reference:</strong> {{ appointment_id }}</p>
                        <p><a href="{{ frontend_url }}/appointments/{{ appointment_id }}"
                              style="display: inline-block; padding: 10px 20px; background: #7b4397; color: white; text-decoration: none; border-radius: 5px;">View Appointment</a></p>
                        {% endif %}
                    </div>
                </body>
                </html>
            """),

            "waitlist_opportunity": Template("""
                <!DOCTYPE html>
                <html>
                <body>
                    <div style="max-width: 600px; margin: 0 auto; padding: 20px; font-family: Arial, sans-serif;">
                        <h2>{{ subject }}</h2>
                        <p>{{ body }}</p>
                        <p>Reply to this email or call the salon to confirm your availability.</p>
                    </div>
                </body>
                </html>
            """),
        }

    def render(self, template_name: str, context: Dict) -> str:
        template = self.templates.get(template_name)
        if template is None:
            raise KeyError(f"Template {template_name} not found")
        return template.render(frontend_url=settings.FRONTEND_URL, **context)

    async def send_email(
        self,
        to_email: str,
        subject: str,
        template_name: str,
        context: Dict,
    ) -> bool:
        """Send an email using SendGrid; returns whether SendGrid accepted it"""
        if not self.is_configured:
            logger.warning(f"Email delivery is not configured; skipping email to {to_email}")
            return False

        html_content = self.render(template_name, context)
        message = Mail(
            from_email=self.from_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content
        )

        # SendGrid's client is blocking
        response = await asyncio.to_thread(self.client.send, message)

        logger.info(f"Email sent to {to_email}: {response.status_code}")
        return response.status_code in [200, 201, 202]


# Initialize global email service
email_service = EmailService()
