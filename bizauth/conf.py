"""BizAuth configuration, read from the environment through navconfig."""
from navconfig import config


# Organizational e-mail suffix that grants the administrator role.
ADMIN_EMAIL_DOMAIN = config.get(
    'AUTH_ADMIN_EMAIL_DOMAIN', fallback='lumoraventures.com'
).strip().lower().lstrip('@')

# Credential collections
OWNERS_COLLECTION = config.get('AUTH_OWNERS_COLLECTION', fallback='owners')
MANAGERS_COLLECTION = config.get('AUTH_MANAGERS_COLLECTION', fallback='managers')

# Username allocation
USERNAME_BASE_LENGTH = config.getint('AUTH_USERNAME_BASE_LENGTH', fallback=8)
USERNAME_MAX_ATTEMPTS = config.getint('AUTH_USERNAME_MAX_ATTEMPTS', fallback=999)
USERNAME_FALLBACK_BASE = config.get('AUTH_USERNAME_FALLBACK_BASE', fallback='user')

# Passwords
MIN_PASSWORD_LENGTH = config.getint('AUTH_MIN_PASSWORD_LENGTH', fallback=6)
ACCEPT_LEGACY_PLAINTEXT = config.getboolean(
    'AUTH_ACCEPT_LEGACY_PLAINTEXT', fallback=False
)
DEFAULT_MANAGER_PERMISSIONS = frozenset(
    p.strip()
    for p in config.get(
        'AUTH_DEFAULT_MANAGER_PERMISSIONS', fallback='view_dashboard'
    ).split(',')
    if p.strip()
)

# Session slot
SESSION_KEY = config.get('AUTH_SESSION_KEY', fallback='auth_session')
REDIS_SESSION_URL = config.get(
    'REDIS_SESSION_URL', fallback='redis://localhost:6379/4'
)

# Redirect targets
LOGIN_PATH = config.get('AUTH_LOGIN_PATH', fallback='/login')
UNAUTHORIZED_PATH = config.get('AUTH_UNAUTHORIZED_PATH', fallback='/unauthorized')
ADMIN_DASHBOARD_PATH = config.get(
    'AUTH_ADMIN_DASHBOARD_PATH', fallback='/admin/dashboard'
)
MANAGER_DASHBOARD_PATH = config.get(
    'AUTH_MANAGER_DASHBOARD_PATH', fallback='/manager/dashboard'
)
OWNER_HOME_PATH = config.get('AUTH_OWNER_HOME_PATH', fallback='/home')
