"""Sign-in gateway.

FastAPI service that exchanges Google One Tap credentials and workspace OAuth
logins for signed application sessions, backed by a SQLModel user directory.
"""

__version__ = "0.1.0"
