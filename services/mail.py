# services/mail.py
"""
Mail services

``MailService`` renders a mail template and hands the message to the
Celery mail task. ``LoggingMailService`` only writes the rendered message
to the log and is used during development.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict

from flask import current_app, render_template

from core.exceptions import MailDeliveryError
from tasks.mail_sender import deliver_mail, send_mail_task

logger = logging.getLogger(__name__)


class BaseMailService(ABC):

    def __init__(self, config: Dict[str, Any] = None):
        self.config = config if config is not None else current_app.config

    def render(self, template: str, name: str, email: str, subject: str, msg: str) -> str:
        return render_template(f"mail/{template}", name=name, email=email,
                               subject=subject, msg=msg)

    def build_payload(self, template: str, name: str, email: str, subject: str, msg: str) -> Dict[str, Any]:
        return {
            'subject': subject,
            'body': self.render(template, name, email, subject, msg),
            'from_address': self.config['MAIL_FROM_ADDRESS'],
            'from_name': self.config.get('MAIL_FROM_NAME', 'WilderBlog'),
            'to_address': self.config['MAIL_ALERT_ADDRESS'],
            'reply_to': email,
            'reply_name': name,
            'smtp': {
                'host': self.config['MAIL_SERVER'],
                'port': self.config.get('MAIL_PORT', 587),
                'username': self.config.get('MAIL_USERNAME'),
                'password': self.config.get('MAIL_PASSWORD'),
                'timeout': self.config.get('MAIL_TIMEOUT', 30),
            },
        }

    @abstractmethod
    def send_mail(self, template: str, name: str, email: str, subject: str, msg: str) -> bool:
        ...


class LoggingMailService(BaseMailService):
    """Development mail service: logs instead of sending"""

    def send_mail(self, template: str, name: str, email: str, subject: str, msg: str) -> bool:
        body = self.render(template, name, email, subject, msg)
        logger.info(f"Mail '{subject}' from {name} <{email}>:\n{body}")
        return True


class MailService(BaseMailService):
    """SMTP mail service"""

    def send_mail(self, template: str, name: str, email: str, subject: str, msg: str) -> bool:
        payload = self.build_payload(template, name, email, subject, msg)

        if self.config.get('MAIL_USE_CELERY', True):
            send_mail_task.delay(payload)
            logger.debug(f"Queued mail '{subject}' for {payload['to_address']}")
            return True

        try:
            deliver_mail(payload)
            return True
        except MailDeliveryError as e:
            logger.error(str(e))
            return False
