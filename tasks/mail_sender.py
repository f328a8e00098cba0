# tasks/mail_sender.py
"""
Celery task that delivers blog mail over SMTP

Used for contact-form messages and critical-error alerts. The message is
built with the standard email package and sent with aiosmtplib.
"""

import asyncio
import smtplib
import uuid
from datetime import datetime
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate
from typing import Any, Dict

import aiosmtplib
from celery import Celery
from celery.signals import task_failure
from celery.utils.log import get_task_logger

from core.exceptions import MailDeliveryError

logger = get_task_logger(__name__)

celery_app = Celery('wilderblog')
celery_app.conf.update({
    'broker_url': 'redis://localhost:6379/2',
    'result_backend': 'redis://localhost:6379/2',
    'task_serializer': 'json',
    'result_serializer': 'json',
    'accept_content': ['json'],
    'timezone': 'UTC',
    'enable_utc': True,
    'task_acks_late': True,
    'task_reject_on_worker_lost': True,
    'result_expires': 3600,
    'task_routes': {
        'tasks.mail_sender.send_mail_task': {'queue': 'mail'},
    },
    'worker_hijack_root_logger': False,
})


def build_message(payload: Dict[str, Any]) -> MIMEText:
    """Create the MIME message for a mail payload"""
    msg = MIMEText(payload['body'], 'plain', 'utf-8')
    msg['Subject'] = payload['subject']
    msg['From'] = formataddr((payload.get('from_name', 'WilderBlog'), payload['from_address']))
    msg['To'] = payload['to_address']
    msg['Date'] = formatdate(localtime=True)
    msg['Message-ID'] = f"<{uuid.uuid4()}@{payload['from_address'].split('@')[-1]}>"
    if payload.get('reply_to'):
        msg['Reply-To'] = formataddr((payload.get('reply_name') or '', payload['reply_to']))
    return msg


async def _async_send_smtp(msg: MIMEText, smtp_config: Dict[str, Any]) -> None:
    port = smtp_config.get('port', 587)
    smtp = aiosmtplib.SMTP(
        hostname=smtp_config['host'],
        port=port,
        timeout=smtp_config.get('timeout', 30),
        use_tls=port == 465,  # Implicit TLS for port 465
        start_tls=True if port == 587 else None,
    )
    await smtp.connect()
    try:
        if smtp_config.get('username') and smtp_config.get('password'):
            await smtp.login(smtp_config['username'], smtp_config['password'])
        await smtp.send_message(msg)
    finally:
        await smtp.quit()


def deliver_mail(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Send one message synchronously; raises ``MailDeliveryError`` on SMTP failure"""
    msg = build_message(payload)
    try:
        asyncio.run(_async_send_smtp(msg, payload['smtp']))
    except (aiosmtplib.SMTPException, smtplib.SMTPException, OSError) as e:
        raise MailDeliveryError(f"Failed to send mail to {payload['to_address']}: {e}") from e

    logger.info(f"Mail '{payload['subject']}' sent to {payload['to_address']}")
    return {
        'success': True,
        'message_id': msg['Message-ID'],
        'sent_at': datetime.utcnow().isoformat(),
    }


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_mail_task(self, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Deliver a mail payload, retrying connection failures with backoff"""
    try:
        return deliver_mail(payload)
    except MailDeliveryError as exc:
        retry_delay = min(300, 60 * (2 ** self.request.retries))  # Cap at 5 minutes
        logger.warning(f"Mail delivery failed, retrying in {retry_delay}s: {exc}")
        raise self.retry(exc=exc, countdown=retry_delay)


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, einfo=None, **kwargs):
    """Handle task failure events"""
    logger.error(f"Task {sender.name} [{task_id}] failed: {exception}")
