"""Persistence of per-user connector configuration and OAuth tokens."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.engine import Engine
from sqlmodel import Session, select
from starlette.concurrency import run_in_threadpool

from nova.core.logging import LogEvents, get_logger
from nova.db.tables import UserConnectorRow
from nova.models.connectors import ConnectorStatus, OAuthTokenSet, StoredConnector

logger = get_logger("credential_store")


def _to_model(row: UserConnectorRow) -> StoredConnector:
    tokens = row.get_tokens()
    return StoredConnector(
        user_id=row.user_id,
        connector_id=row.connector_id,
        name=row.name,
        config=row.get_config(),
        tokens=OAuthTokenSet.model_validate(tokens) if tokens else None,
        status=ConnectorStatus(row.status),
        last_synced_at=row.last_synced_at,
    )


class CredentialStore:
    """Reads and writes the ``user_connectors`` table.

    Every write is scoped to one ``(user_id, connector_id)`` row.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    async def get(self, user_id: str, connector_id: str) -> StoredConnector | None:
        return await run_in_threadpool(self._get, user_id, connector_id)

    async def save(
        self,
        user_id: str,
        connector_id: str,
        name: str,
        tokens: OAuthTokenSet | None = None,
        config: dict[str, Any] | None = None,
        status: ConnectorStatus = ConnectorStatus.CONNECTED,
    ) -> StoredConnector:
        return await run_in_threadpool(
            self._save, user_id, connector_id, name, tokens, config, status
        )

    async def update_tokens(
        self, user_id: str, connector_id: str, tokens: OAuthTokenSet
    ) -> None:
        await run_in_threadpool(self._update_tokens, user_id, connector_id, tokens)

    async def delete(self, user_id: str, connector_id: str) -> bool:
        return await run_in_threadpool(self._delete, user_id, connector_id)

    def _row(self, session: Session, user_id: str, connector_id: str) -> UserConnectorRow | None:
        return session.exec(
            select(UserConnectorRow).where(
                UserConnectorRow.user_id == user_id,
                UserConnectorRow.connector_id == connector_id,
            )
        ).first()

    def _get(self, user_id: str, connector_id: str) -> StoredConnector | None:
        with Session(self._engine) as session:
            row = self._row(session, user_id, connector_id)
            return _to_model(row) if row else None

    def _save(
        self,
        user_id: str,
        connector_id: str,
        name: str,
        tokens: OAuthTokenSet | None,
        config: dict[str, Any] | None,
        status: ConnectorStatus,
    ) -> StoredConnector:
        now = datetime.now(timezone.utc)
        with Session(self._engine) as session:
            row = self._row(session, user_id, connector_id)
            if row is None:
                row = UserConnectorRow(user_id=user_id, connector_id=connector_id, created_at=now)
            row.name = name
            if config is not None:
                row.set_config({**row.get_config(), **config})
            if tokens is not None:
                row.set_tokens(tokens.model_dump(mode="json"))
            row.status = status.value
            row.last_synced_at = now
            row.updated_at = now
            session.add(row)
            session.commit()
            session.refresh(row)
            saved = _to_model(row)

        logger.info(LogEvents.TOKENS_SAVED, user_id=user_id, connector_id=connector_id)
        return saved

    def _update_tokens(self, user_id: str, connector_id: str, tokens: OAuthTokenSet) -> None:
        with Session(self._engine) as session:
            row = self._row(session, user_id, connector_id)
            if row is None:
                return
            row.set_tokens(tokens.model_dump(mode="json"))
            row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            session.commit()

    def _delete(self, user_id: str, connector_id: str) -> bool:
        with Session(self._engine) as session:
            row = self._row(session, user_id, connector_id)
            if row is None:
                return False
            session.delete(row)
            session.commit()

        logger.info(LogEvents.TOKENS_REVOKED, user_id=user_id, connector_id=connector_id)
        return True
