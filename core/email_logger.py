# core/email_logger.py
"""
Logging handler that mails log records through the registered mail service
"""

import logging
import threading
from typing import Callable


class EmailLogHandler(logging.Handler):
    """Mail every record at or above ``level``

    ``mail_service_factory`` returns the mail service to use; it is resolved per
    record so the handler follows the app's current registration. Records
    emitted while a mail is being sent are dropped so a failing mail
    service can't trigger itself.
    """

    def __init__(self, mail_service_factory: Callable, app_name: str = 'WilderBlog',
                 level: int = logging.CRITICAL, app=None):
        super().__init__(level)
        self.mail_service_factory = mail_service_factory
        self.app_name = app_name
        self.app = app
        self._sending = threading.local()

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(self._sending, 'active', False):
            return
        self._sending.active = True
        try:
            subject = f"[{self.app_name}] {record.levelname}: {record.getMessage()[:80]}"
            body = self.format(record)
            if self.app is not None:
                with self.app.app_context():
                    self._send(subject, body)
            else:
                self._send(subject, body)
        except Exception:
            self.handleError(record)
        finally:
            self._sending.active = False

    def _send(self, subject: str, body: str) -> None:
        mail_service = self.mail_service_factory()
        mail_service.send_mail('logmessage.txt', self.app_name, mail_service.config['MAIL_FROM_ADDRESS'],
                               subject, body)
