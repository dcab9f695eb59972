# api/subscriptions.py
"""
Subscription intake plus read-only listing and export endpoints
"""

import logging

from flask import Blueprint, Response, current_app, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from core.errors import AuditLogError, StoreError, ValidationError

subscriptions_bp = Blueprint('subscriptions', __name__)
logger = logging.getLogger(__name__)

# Bound to the app in create_app; storage and defaults come from RATELIMIT_* config
limiter = Limiter(key_func=get_remote_address)

# Plain-text prefix per failing store step
STORE_ERROR_PREFIXES = {
    'upsert_subscriber': 'Could not save email',
    'find_subscriber_id': 'Could not fetch ID',
    'insert_message': 'Could not save message',
}


def _text(body, status: int = 200) -> Response:
    return Response(body, status=status, mimetype='text/plain')


def _pipeline():
    return current_app.extensions['subscription_pipeline']


@subscriptions_bp.route('/subscribe/email', methods=['POST'])
@limiter.limit(lambda: current_app.config['SUBSCRIBE_RATE_LIMIT'])
def subscribe_email():
    """Run a form submission through the subscription pipeline"""
    email = request.form.get('email', '')
    message = request.form.get('message', '')
    
    try:
        result = _pipeline().submit(email, message)
    except ValidationError as e:
        logger.info(f"Rejected submission from {request.remote_addr}: {e}")
        return _text(str(e), 400)
    except StoreError as e:
        prefix = STORE_ERROR_PREFIXES.get(e.step, 'Could not save subscription')
        logger.error(f"{prefix} for {email}: {e}")
        return _text(f"{prefix}: {e}", 500)
    
    for advisory in result.advisories:
        logger.warning(f"Submission for {email} degraded at {advisory.step}: {advisory.error}")
    
    return _text(result.acknowledgment)


@subscriptions_bp.route('/subscribers', methods=['GET'])
def list_subscribers():
    """Every subscriber email, one per line"""
    try:
        emails = _pipeline().store.list_subscriber_emails()
    except StoreError as e:
        logger.error(f"Failed to fetch subscribers: {e}")
        return _text("Failed to fetch subscribers", 500)
    
    return _text(''.join(f"{email}\n" for email in emails))


@subscriptions_bp.route('/view-emails', methods=['GET'])
def view_emails():
    try:
        data = _pipeline().audit_log.read()
    except AuditLogError as e:
        logger.error(f"Audit log export failed: {e}")
        return _text("Cannot read file", 500)
    
    return _text(data)


@subscriptions_bp.route('/submit', methods=['POST'])
def submit_message():
    """Accept a contact message without storing it"""
    email = request.form.get('email', '')
    message = request.form.get('message', '')
    logger.info(f"New message from {email}: {message}")
    return _text("Message received!")
