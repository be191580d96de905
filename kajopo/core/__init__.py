"""Core session, lockout, permission and authentication components."""
