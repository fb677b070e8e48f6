"""
Context Processors
==================
Add global template context variables.
"""
import os

from crm_app.access import role_for_user
from models.enums import Role
from services.visibility import navigation_for


def build_info(request):
    """
    Add build SHA to every template for deployed version visibility.

    Uses RAILWAY_GIT_COMMIT_SHA if available (set by Railway at deploy time).
    Shows 'unknown' if not running on Railway.
    """
    sha = os.environ.get('RAILWAY_GIT_COMMIT_SHA', 'unknown')
    # Show first 8 chars for readability
    return {
        'BUILD_SHA': sha[:8] if sha != 'unknown' else 'unknown'
    }


def navigation(request):
    """
    Sidebar menu for the signed-in user's role.

    Empty for anonymous users and users without a role group.
    """
    user = getattr(request, 'user', None)
    role = role_for_user(user)
    return {
        'crm_role': role.value if role else None,
        'crm_role_label': Role.display_labels().get(role.value, '') if role else '',
        'nav_sections': navigation_for(role),
    }
