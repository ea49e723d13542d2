"""AccountService: registration, login and profile management."""
import logging
from typing import Tuple

from app.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.storage import PersistenceGateway, User

from .schemas import ProfileUpdate, RegisterRequest
from .security import (
    create_access_token,
    hash_password,
    validate_password_strength,
    verify_password,
)

logger = logging.getLogger(__name__)


class AccountService:
    """Account operations on top of the persistence gateway."""

    def __init__(self, store: PersistenceGateway) -> None:
        self.store = store

    async def register(self, request: RegisterRequest) -> Tuple[User, str]:
        """Create an account and issue its first token.

        Raises:
            ValidationError: Weak password, or email/username already taken.
        """
        validate_password_strength(request.password)

        if await self.store.find_user_by_email(request.email):
            raise ValidationError("User already exists", "Email is already registered")
        if await self.store.find_user_by_username(request.username):
            raise ValidationError(
                "Username already taken", "Please choose a different username"
            )

        user = await self.store.create_user(User(
            firstName=request.firstName,
            lastName=request.lastName,
            username=request.username,
            email=request.email.lower(),
            password=hash_password(request.password),
        ))
        logger.info("[Auth] Registered user %s (%s)", user.id, user.username)
        return user, create_access_token(user)

    async def login(self, email: str, password: str) -> Tuple[User, str]:
        user = await self.store.find_user_by_email(email)
        if user is None or not verify_password(password, user.password):
            raise AuthenticationError("Invalid credentials", "Invalid email or password")
        logger.info("[Auth] Login for user %s", user.id)
        return user, create_access_token(user)

    async def request_password_reset(self, email: str) -> None:
        """Look up the account; mail delivery is not implemented."""
        user = await self.store.find_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found", "No user with that email exists")
        logger.info("[Auth] Password reset requested for user %s", user.id)

    async def reset_password(self, email: str, new_password: str) -> None:
        validate_password_strength(new_password)
        user = await self.store.find_user_by_email(email)
        if user is None:
            raise NotFoundError("User not found", "No user with that email exists")
        user.password = hash_password(new_password)
        await self.store.update_user(user)
        logger.info("[Auth] Password reset for user %s", user.id)

    async def get_account(self, user_id: str) -> User:
        user = await self.store.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", "No user with that ID exists")
        return user

    async def update_profile(self, user_id: str, update: ProfileUpdate) -> User:
        """Apply the provided fields to the caller's profile.

        Rooms keep the participant snapshot taken when they were created;
        this does not rewrite them.
        """
        user = await self.get_account(user_id)
        fields = update.model_dump(exclude_none=True)

        new_username = fields.get("username")
        if new_username and new_username != user.username:
            if await self.store.find_user_by_username(new_username):
                raise ConflictError("Duplicate field value", "username already exists")

        for name, value in fields.items():
            setattr(user, name, value)
        user = await self.store.update_user(user)
        logger.info("[Auth] Updated profile for user %s: %s", user.id, sorted(fields))
        return user

    async def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> None:
        user = await self.get_account(user_id)
        if not verify_password(current_password, user.password):
            raise AuthenticationError("Invalid current password", "Password mismatch")
        validate_password_strength(new_password)
        user.password = hash_password(new_password)
        await self.store.update_user(user)
        logger.info("[Auth] Password changed for user %s", user.id)
