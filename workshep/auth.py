"""
JWT Authentication for Workshep.
Validates Bearer tokens on all /api/ routes except public endpoints.
"""
import os
import logging

import jwt
from flask import request, jsonify, g

from .config import AUTH_DISABLED, JWT_SECRET, LOCAL_USER
from .errors import PermissionDenied
from .services import workshop_service as ws

logger = logging.getLogger(__name__)

ROLE_TEACHER = ws.ROLE_TEACHER
ROLE_STUDENT = ws.ROLE_STUDENT

# Routes that don't require authentication
PUBLIC_EXACT = [
    '/api/status',
]


def get_jwt_secret():
    """Get the JWT secret from the environment."""
    secret = os.getenv('WORKSHEP_JWT_SECRET') or JWT_SECRET
    if not secret:
        raise RuntimeError('WORKSHEP_JWT_SECRET not configured')
    return secret


def validate_token(token):
    """
    Validate a JWT and return the decoded payload.
    Returns None if invalid.
    """
    try:
        return jwt.decode(token, get_jwt_secret(), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def create_token(userid, role=ROLE_STUDENT, **claims):
    """Issue a token for the given user. Used by tooling and tests."""
    payload = {'sub': str(userid), 'role': role}
    payload.update(claims)
    return jwt.encode(payload, get_jwt_secret(), algorithm='HS256')


def is_public_route(path):
    return path in PUBLIC_EXACT


def init_auth(app):
    """
    Register the before_request auth hook on the Flask app.
    Call this BEFORE registering blueprints.
    """
    @app.before_request
    def check_auth():
        # Skip non-API routes
        if not request.path.startswith('/api/'):
            return None

        if is_public_route(request.path):
            return None

        if AUTH_DISABLED:
            g.user_id = LOCAL_USER
            g.user_role = ROLE_TEACHER
            return None

        auth_header = request.headers.get('Authorization', '')
        if not auth_header.startswith('Bearer '):
            return jsonify({'error': 'Authentication required'}), 401

        token = auth_header[7:]  # Strip 'Bearer '
        payload = validate_token(token)
        if payload is None or not payload.get('sub'):
            return jsonify({'error': 'Invalid or expired token'}), 401

        g.user_id = str(payload['sub'])
        g.user_role = payload.get('role', ROLE_STUDENT)
        return None


def current_user():
    """Id of the authenticated user."""
    return g.get('user_id')


def is_site_teacher():
    return g.get('user_role') == ROLE_TEACHER


def require_teacher(state=None):
    """Teachers by token role, or by enrolment in the given workshop."""
    if is_site_teacher():
        return
    if state is not None and ws.is_teacher(state, current_user()):
        return
    raise PermissionDenied("Teacher permission required")


def can_manage(state) -> bool:
    return is_site_teacher() or ws.is_teacher(state, current_user())
