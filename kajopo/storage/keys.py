"""Fixed storage keys and namespaces."""

# Client-scoped keys
USER_SESSION_KEY = "kajopo_session"
USER_CURRENT_KEY = "kajopo_user"
ADMIN_SESSION_KEY = "kajopo_admin_session"
ADMIN_CURRENT_KEY = "kajopo_admin"
NOTICES_KEY = "kajopo_notices"

# Shared keys
ACTIVITY_LOG_KEY = "kajopo_admin_logs"
AUTH_IDENTITIES_KEY = "kajopo_auth_identities"

# Namespaces
CLIENT_NAMESPACE = "client"
LOCKOUT_NAMESPACE = "lockout"
TABLE_KEY_PREFIX = "kajopo_"


def table_key(table: str) -> str:
    return f"{TABLE_KEY_PREFIX}{table}"
