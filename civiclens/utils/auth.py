from flask_jwt_extended import get_jwt_identity

from civiclens import db
from civiclens.models.user import User
from civiclens.utils.exceptions import NotFound
from civiclens.utils.validators import validate_uuid


def get_current_user():
    """Caller resolved from the JWT, or None when the request is anonymous."""
    identity = get_jwt_identity()
    if not identity:
        return None
    user = db.session.get(User, validate_uuid(identity, 'User ID'))
    if user is None or not user.is_active:
        return None
    return user


def require_current_user():
    user = get_current_user()
    if user is None:
        raise NotFound("User not found")
    return user


def visibility_for(user):
    """Visibility predicate for ``user`` (None for anonymous callers)."""
    return lambda issue: issue.can_view(user)
