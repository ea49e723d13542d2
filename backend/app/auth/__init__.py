"""Authentication module.

Provides account registration and login with JWT access tokens:

Services:
    - AccountService: register, login, password reset and profile updates.
    - get_current_user: FastAPI dependency resolving the bearer token.
"""
