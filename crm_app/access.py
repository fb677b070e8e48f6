"""
Role access for Django requests.

Maps an authenticated user to a CRM Role and gates views through
services.visibility. Views never branch on role names themselves.
"""

import logging
from functools import wraps

from django.contrib.auth.decorators import login_required
from django.http import HttpResponseForbidden

from models.enums import Role
from services.visibility import can_access

logger = logging.getLogger(__name__)


def role_for_user(user):
    """
    Role of a Django user.

    Superusers are ADMIN. Otherwise the first auth group whose name is a
    role wins, checked in Role order so the result does not depend on
    group creation order. Anonymous users and users without a role group
    get None.
    """
    if user is None or not user.is_authenticated:
        return None
    if user.is_superuser:
        return Role.ADMIN

    group_names = {name.upper() for name in user.groups.values_list('name', flat=True)}
    for role in Role:
        if role.value in group_names:
            return role
    return None


def require_access(code):
    """
    View decorator: login required, then the user's role must reach `code`
    (a section or section.item). Denied requests get 403.

    The resolved role is stored on request.crm_role.
    """
    def decorator(view_func):
        @login_required
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            role = role_for_user(request.user)
            if not can_access(role, code):
                logger.info(f"Denied {code} for user {request.user.username} (role={role})")
                return HttpResponseForbidden(f"Access denied: {code}")
            request.crm_role = role
            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
