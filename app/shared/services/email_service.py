from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

from jinja2 import Environment, FileSystemLoader, select_autoescape, TemplateError

from ..clients.email_client import EmailClient, EmailDeliveryError
from ...core.config import settings

logger = logging.getLogger(__name__)


# template name -> subject line (Jinja2 expression rendered with the same vars)
TEMPLATE_SUBJECTS: Dict[str, str] = {
    "blood_request": "Blood Request: {{ blood_type }} Needed",
    "otp_verification": "Verify Your Email - {{ platform_name }}",
}


class EmailTemplateEngine:
    """Jinja2 based email template engine"""

    def __init__(self, templates_dir: str = "templates"):
        """
        Initialize the template engine.

        Args:
            templates_dir: Path to templates directory relative to project root
        """
        project_root = Path(__file__).parent.parent.parent.parent
        self.templates_path = project_root / templates_dir

        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_path)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters['datetime'] = self._datetime_filter

        logger.debug(f"Email template engine initialized with path: {self.templates_path}")

    def _datetime_filter(self, value: datetime, format: str = '%Y-%m-%d %H:%M') -> str:
        """Custom datetime filter for templates"""
        if not isinstance(value, datetime):
            return str(value)
        return value.strftime(format)

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render a template with given context.

        Args:
            template_name: Template file name (e.g., 'email/blood_request.html')
            context: Template context variables

        Returns:
            Rendered template content
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(**context)
        except TemplateError as e:
            logger.error(f"Error rendering template {template_name}: {e}")
            raise

    def render_string(self, source: str, context: Dict[str, Any]) -> str:
        return self.env.from_string(source).render(**context)

    def template_exists(self, template_name: str) -> bool:
        """Check if template exists"""
        try:
            self.env.get_template(template_name)
            return True
        except TemplateError:
            return False


class EmailService:
    """Templated email sender.

    `send` fails loudly: any rendering or delivery problem raises
    EmailDeliveryError and the caller decides whether to swallow it.
    """

    def __init__(self, client: Optional[EmailClient] = None, template_engine: Optional[EmailTemplateEngine] = None):
        self.template_engine = template_engine or EmailTemplateEngine()
        self.client = client or EmailClient()

    def _default_context(self) -> Dict[str, Any]:
        return {
            'current_date': datetime.now(),
            'year': datetime.now().year,
            'platform_name': settings.email_from_name,
            'frontend_url': settings.frontend_url,
        }

    async def send(self, to: str, template: str, template_vars: Dict[str, Any]) -> Dict[str, Any]:
        """
        Render `template` with `template_vars` and deliver it to `to`.

        Args:
            to: Recipient email address
            template: Template key, e.g. "blood_request" or "otp_verification"
            template_vars: Template context data

        Returns:
            Provider result (ok, provider, message_id)
        """
        if not to:
            raise EmailDeliveryError("Recipient address is empty")
        if template not in TEMPLATE_SUBJECTS:
            raise EmailDeliveryError(f"Unknown email template '{template}'")

        context = {**self._default_context(), **(template_vars or {})}
        try:
            html_content = self.template_engine.render_template(f"email/{template}.html", context)
            subject = self.template_engine.render_string(TEMPLATE_SUBJECTS[template], context)
        except TemplateError as e:
            raise EmailDeliveryError(f"Could not render template '{template}': {e}") from e

        text_content = self._html_to_text(html_content)

        result = await asyncio.to_thread(
            self.client.send,
            to,
            subject,
            html_content,
            text=text_content,
            meta={'template': template, 'timestamp': datetime.now().isoformat()},
        )
        if not result.get("ok"):
            raise EmailDeliveryError(f"Email to {to} was not accepted: {result.get('error')}")

        logger.info(f"Templated email sent to {to} using template {template}")
        return result

    def _html_to_text(self, html_content: str) -> str:
        """Convert HTML to plain text (simple implementation)"""
        text = re.sub(r'<(style|head)[^>]*>.*?</\1>', '', html_content, flags=re.S | re.I)
        text = re.sub(r'<[^>]+>', '', text)
        text = re.sub(r'\s+', ' ', text)

        text = text.replace('&nbsp;', ' ')
        text = text.replace('&lt;', '<')
        text = text.replace('&gt;', '>')
        text = text.replace('&amp;', '&')

        return text.strip()

    def get_available_templates(self) -> List[str]:
        """Template keys that have a file on disk"""
        return [name for name in TEMPLATE_SUBJECTS if self.template_engine.template_exists(f"email/{name}.html")]
