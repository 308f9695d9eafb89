"""BizAuth Meta information."""

__title__ = "bizauth"
__description__ = (
    "Authentication, session persistence and role-based authorization "
    "for multi-tenant business management."
)
__version__ = "0.4.1"
__author__ = "BizAuth developers"
__license__ = "MIT"
__copyright__ = "Copyright (c) 2024 BizAuth developers"
