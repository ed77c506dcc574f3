"""
Infrastructure entry points: the shared database handle and bearer-token auth.
"""

from khidma.infra.db import db
from khidma.infra.auth import auth_required, current_user, init_auth, issue_token

__all__ = ["db", "auth_required", "current_user", "init_auth", "issue_token"]
