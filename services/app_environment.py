# services/app_environment.py
import platform
from datetime import datetime
from typing import Any, Dict

from flask import current_app


class ApplicationEnvironment:
    """Runtime facts about the running application, shown in the footer and /health"""

    def __init__(self, config: Dict[str, Any] = None):
        config = config if config is not None else current_app.config
        self.application_name = config.get('APP_NAME', 'WilderBlog')
        self.version = config.get('VERSION', '1.0.0')
        self.environment = config.get('ENVIRONMENT', 'production')
        self.started_at: datetime = config.get('START_TIME') or datetime.utcnow()
        self.runtime_version = platform.python_version()

    @property
    def uptime_seconds(self) -> float:
        return (datetime.utcnow() - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'application_name': self.application_name,
            'version': self.version,
            'environment': self.environment,
            'runtime_version': self.runtime_version,
            'started_at': self.started_at.isoformat(),
            'uptime_seconds': round(self.uptime_seconds, 1),
        }
