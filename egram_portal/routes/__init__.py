# SPDX-License-Identifier: Apache-2.0

"""
HTTP route blueprints.
"""

from .auth import auth_bp, users_bp
from .services import services_bp
from .applications import applications_bp
from .notifications import notifications_bp
from .logs import logs_bp

__all__ = [
    "auth_bp",
    "users_bp",
    "services_bp",
    "applications_bp",
    "notifications_bp",
    "logs_bp"
]
