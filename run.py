"""Application entry point.

Serve with Gunicorn (``gunicorn run:app``); the Celery mail worker runs with
``celery -A run.celery worker -Q mail``.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from app import create_app  # noqa: E402

app = create_app()
celery = app.extensions['celery']

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
