# routes/errors.py
from flask import Blueprint, render_template
from werkzeug.http import HTTP_STATUS_CODES

errors_bp = Blueprint('errors', __name__)


@errors_bp.route('/Error/<int:code>')
def status_code(code):
    message = HTTP_STATUS_CODES.get(code, 'Error')
    status = code if 400 <= code < 600 else 200
    return render_template('error.html', code=code, message=message), status


@errors_bp.route('/Exception')
def exception():
    return render_template('exception.html'), 500
