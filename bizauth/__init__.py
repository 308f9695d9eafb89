"""BizAuth.

Authentication, session management and role-based authorization for the
business-management suite.
"""
from .version import __version__

__all__ = ["__version__"]
