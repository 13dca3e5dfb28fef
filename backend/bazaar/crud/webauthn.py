import uuid
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.webauthn import WebAuthnChallenge, WebAuthnCredential


class WebAuthnRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_credential(
        self,
        user_id: uuid.UUID,
        credential_id: str,
        public_key: str,
        transports: list[str] | None = None,
    ) -> WebAuthnCredential:
        credential = WebAuthnCredential(
            user_id=user_id,
            credential_id=credential_id,
            public_key=public_key,
            transports=transports,
        )
        self.session.add(credential)
        await self.session.flush()
        await self.session.refresh(credential)
        return credential

    async def list_credentials(self, user_id: uuid.UUID) -> list[WebAuthnCredential]:
        result = await self.session.execute(
            select(WebAuthnCredential)
            .where(WebAuthnCredential.user_id == user_id)
            .order_by(WebAuthnCredential.created_at)
        )
        return list(result.scalars().all())

    async def get_user_credential(
        self, user_id: uuid.UUID, credential_id: str
    ) -> WebAuthnCredential | None:
        result = await self.session.execute(
            select(WebAuthnCredential).where(
                WebAuthnCredential.user_id == user_id,
                WebAuthnCredential.credential_id == credential_id,
            )
        )
        return result.scalar_one_or_none()

    async def touch_credential(self, credential_pk: uuid.UUID, used_at: datetime) -> None:
        await self.session.execute(
            update(WebAuthnCredential)
            .where(WebAuthnCredential.id == credential_pk)
            .values(last_used_at=used_at)
        )
        await self.session.flush()

    async def upsert_challenge(
        self, user_id: uuid.UUID, challenge: str, expires_at: datetime
    ) -> None:
        # One row per user: the newest challenge always replaces the previous one
        stmt = pg_insert(WebAuthnChallenge).values(
            user_id=user_id, challenge=challenge, expires_at=expires_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[WebAuthnChallenge.user_id],
            set_={"challenge": stmt.excluded.challenge, "expires_at": stmt.excluded.expires_at},
        )
        await self.session.execute(stmt)
        await self.session.flush()

    async def get_challenge(self, user_id: uuid.UUID) -> WebAuthnChallenge | None:
        result = await self.session.execute(
            select(WebAuthnChallenge).where(WebAuthnChallenge.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def delete_challenge(self, user_id: uuid.UUID) -> None:
        await self.session.execute(
            delete(WebAuthnChallenge).where(WebAuthnChallenge.user_id == user_id)
        )
        await self.session.flush()
