from typing import Any

from sqlmodel import Session, select

from src.signin.entities.core._base import utc_now
from src.signin.entities.core.user.entity import User
from src.signin.entities.core.user.table import UserTable


class UserRepository:
    """Data-access layer for users."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, user_id: str) -> User | None:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def get_by_email(self, email: str) -> User | None:
        statement = select(UserTable).where(UserTable.email == email)
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return User.model_validate(row, from_attributes=True)

    def list_all(self, limit: int = 100) -> list[User]:
        statement = select(UserTable).order_by(UserTable.created_at).limit(limit)
        return [
            User.model_validate(row, from_attributes=True)
            for row in self._session.exec(statement)
        ]

    def create(self, user: User) -> User:
        row = UserTable(**user.model_dump())
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return User.model_validate(row, from_attributes=True)

    def update(self, user_id: str, **changes: Any) -> User | None:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return None
        for field, value in changes.items():
            setattr(row, field, value)
        row.updated_at = utc_now()
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return User.model_validate(row, from_attributes=True)

    def delete(self, user_id: str) -> bool:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return False
        self._session.delete(row)
        self._session.flush()
        return True
