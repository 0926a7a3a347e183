"""User directory adapter over the ORM repositories."""

from datetime import datetime

from loguru import logger
from sqlmodel import Session

from src.signin.entities.core.account import LinkedAccount, LinkedAccountRepository
from src.signin.entities.core.user import User, UserRepository


class UserDirectoryAdapter:
    """Capability set the sign-in flows need from the persistence layer.

    Each write commits on its own; a failed write is rolled back and the
    error propagates to the caller. The unique constraint on
    ``(provider, provider_account_id)`` is the only guard against two
    concurrent first sign-ins linking the same subject.
    """

    def __init__(self, db_session: Session):
        self._db_session = db_session
        self._user_repo = UserRepository(db_session)
        self._account_repo = LinkedAccountRepository(db_session)

    def get_user(self, user_id: str) -> User | None:
        return self._user_repo.get(user_id)

    def get_user_by_email(self, email: str) -> User | None:
        return self._user_repo.get_by_email(email)

    def get_user_by_account(self, provider: str, provider_account_id: str) -> User | None:
        """Resolve the user linked to a provider account, if any."""
        account = self._account_repo.get_by_provider_account(provider, provider_account_id)
        if account is None:
            return None
        user = self._user_repo.get(account.user_id)
        if user is None:
            logger.warning(
                "Linked account {}:{} points at a missing user",
                provider,
                provider_account_id,
            )
        return user

    def list_users(self, limit: int = 100) -> list[User]:
        return self._user_repo.list_all(limit=limit)

    def list_accounts(self, user_id: str) -> list[LinkedAccount]:
        return self._account_repo.list_for_user(user_id)

    def create_user(
        self,
        email: str | None,
        name: str | None = None,
        image: str | None = None,
        email_verified_at: datetime | None = None,
    ) -> User:
        try:
            user = self._user_repo.create(
                User(
                    email=email,
                    name=name,
                    image=image,
                    email_verified_at=email_verified_at,
                )
            )
            self._db_session.commit()
        except Exception:
            self._db_session.rollback()
            raise
        logger.info("Created user {}", user.id)
        return user

    def update_user(self, user_id: str, **changes) -> User:
        """Apply field changes to a user and return the updated record.

        Raises:
            LookupError: If the user does not exist
        """
        try:
            user = self._user_repo.update(user_id, **changes)
            if user is None:
                raise LookupError(f"User {user_id} not found")
            self._db_session.commit()
        except Exception:
            self._db_session.rollback()
            raise
        return user

    def link_account(
        self,
        user_id: str,
        provider: str,
        provider_account_id: str,
        type: str,
        **tokens,
    ) -> None:
        """Persist a new provider account link for a user."""
        try:
            self._account_repo.create(
                LinkedAccount(
                    user_id=user_id,
                    provider=provider,
                    provider_account_id=provider_account_id,
                    type=type,
                    **tokens,
                )
            )
            self._db_session.commit()
        except Exception:
            self._db_session.rollback()
            raise
        logger.info("Linked {} account to user {}", provider, user_id)

    def delete_user(self, user_id: str) -> bool:
        """Delete a user together with its linked accounts."""
        try:
            self._account_repo.delete_for_user(user_id)
            deleted = self._user_repo.delete(user_id)
            self._db_session.commit()
        except Exception:
            self._db_session.rollback()
            raise
        return deleted
