"""
Outreach email senders.

SystemSender is the platform mailer stand-in: it records nothing beyond a log
line and hands back a placeholder message id. GmailSender sends from the
creator's connected Gmail account through the Gmail REST API, refreshing the
OAuth token when it has expired.

Both raise ExternalCollaboratorError on failure. Sends are not retried.
"""

import base64
import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from email.mime.text import MIMEText
from typing import Optional

import requests
from django.conf import settings
from django.utils import timezone

from core.exceptions import ExternalCollaboratorError

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = 'https://oauth2.googleapis.com/token'
GMAIL_SEND_URL = 'https://gmail.googleapis.com/gmail/v1/users/me/messages/send'

OUTREACH_SIGNATURE = 'Sent with ManAIger, your AI manager for streamers and creators.'


def render_outreach_body(creator_name: str, brand_name: str, pitch: str) -> str:
    """Wrap the creator's pitch in the standard outreach letter."""
    return (
        f"Hi {brand_name} Team,\n\n"
        f"{pitch.strip()}\n\n"
        f"Best,\n"
        f"{creator_name}\n\n"
        f"--\n"
        f"{OUTREACH_SIGNATURE}\n"
    )


@dataclass
class SendResult:
    message_id: str
    via: str
    thread_id: Optional[str] = None


class SystemSender:
    """Platform sender. No provider call is made."""

    via = 'system'
    connection = None

    def send(self, to_email: str, subject: str, body: str, reply_to: Optional[str] = None) -> SendResult:
        message_id = f"placeholder-{uuid.uuid4()}"
        logger.info("Outreach to %s queued via system sender (%s)", to_email, message_id)
        return SendResult(message_id=message_id, via=self.via)


class GmailSender:
    """Send through a creator's connected Gmail account."""

    via = 'gmail'

    def __init__(self, connection, session: Optional[requests.Session] = None):
        """
        Args:
            connection: EmailConnection with Gmail OAuth tokens
            session: requests session, injectable for tests
        """
        self.connection = connection
        self.session = session or requests.Session()
        self.timeout = settings.GMAIL_API_TIMEOUT

    def _refresh_token_if_needed(self) -> str:
        """Return a usable access token, refreshing it when expired."""
        access_token = self.connection.access_token
        if access_token and not self.connection.is_token_expired():
            return access_token

        refresh_token = self.connection.refresh_token
        if not refresh_token:
            raise ExternalCollaboratorError('gmail', 'Gmail authentication expired. Please reconnect your Gmail account.')

        try:
            response = self.session.post(
                GOOGLE_TOKEN_URL,
                data={
                    'client_id': settings.GOOGLE_OAUTH_CLIENT_ID,
                    'client_secret': settings.GOOGLE_OAUTH_CLIENT_SECRET,
                    'refresh_token': refresh_token,
                    'grant_type': 'refresh_token',
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalCollaboratorError('gmail', f'Token refresh failed: {e}')

        if response.status_code != 200:
            logger.error("Failed to refresh Google token for %s: %s", self.connection.email_address, response.text)
            raise ExternalCollaboratorError(
                'gmail', 'Gmail authentication expired. Please reconnect your Gmail account.',
                {'status': response.status_code},
            )

        data = response.json()
        self.connection.access_token = data['access_token']
        self.connection.token_expires_at = timezone.now() + timedelta(seconds=data.get('expires_in', 3600))
        self.connection.save(update_fields=['_access_token', 'token_expires_at', 'updated_at'])
        logger.info("Refreshed Google token for %s", self.connection.email_address)
        return data['access_token']

    def _build_raw(self, to_email: str, subject: str, body: str, reply_to: Optional[str]) -> str:
        message = MIMEText(body, 'plain', 'utf-8')
        message['to'] = to_email
        message['from'] = self.connection.email_address
        message['subject'] = subject
        if reply_to:
            message['reply-to'] = reply_to
        return base64.urlsafe_b64encode(message.as_bytes()).decode('utf-8')

    def send(self, to_email: str, subject: str, body: str, reply_to: Optional[str] = None) -> SendResult:
        access_token = self._refresh_token_if_needed()
        try:
            response = self.session.post(
                GMAIL_SEND_URL,
                headers={'Authorization': f'Bearer {access_token}'},
                json={'raw': self._build_raw(to_email, subject, body, reply_to)},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalCollaboratorError('gmail', f'Failed to send email via Gmail: {e}')

        if response.status_code == 401:
            raise ExternalCollaboratorError(
                'gmail', 'Gmail authentication expired. Please reconnect your Gmail account.', {'status': 401}
            )
        if response.status_code >= 400:
            logger.error("Gmail send to %s failed (%s): %s", to_email, response.status_code, response.text)
            raise ExternalCollaboratorError(
                'gmail', 'Failed to send email via Gmail', {'status': response.status_code}
            )

        result = response.json()
        self.connection.last_used_at = timezone.now()
        self.connection.save(update_fields=['last_used_at'])
        logger.info("Sent email via Gmail to %s", to_email)
        return SendResult(message_id=result.get('id', ''), via=self.via, thread_id=result.get('threadId'))
