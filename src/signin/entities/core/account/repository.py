from sqlmodel import Session, select

from src.signin.entities.core.account.entity import LinkedAccount
from src.signin.entities.core.account.table import LinkedAccountTable


class LinkedAccountRepository:
    """Data-access layer for linked provider accounts."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_provider_account(
        self, provider: str, provider_account_id: str
    ) -> LinkedAccount | None:
        statement = select(LinkedAccountTable).where(
            (LinkedAccountTable.provider == provider)
            & (LinkedAccountTable.provider_account_id == provider_account_id)
        )
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return LinkedAccount.model_validate(row, from_attributes=True)

    def list_for_user(self, user_id: str) -> list[LinkedAccount]:
        statement = select(LinkedAccountTable).where(
            LinkedAccountTable.user_id == user_id
        )
        return [
            LinkedAccount.model_validate(row, from_attributes=True)
            for row in self._session.exec(statement)
        ]

    def create(self, account: LinkedAccount) -> LinkedAccount:
        row = LinkedAccountTable(**account.model_dump())
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return LinkedAccount.model_validate(row, from_attributes=True)

    def delete_for_user(self, user_id: str) -> int:
        statement = select(LinkedAccountTable).where(
            LinkedAccountTable.user_id == user_id
        )
        rows = list(self._session.exec(statement))
        for row in rows:
            self._session.delete(row)
        self._session.flush()
        return len(rows)
