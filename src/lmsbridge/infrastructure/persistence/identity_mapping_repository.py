"""SQLite implementation of IdentityMappingRepository."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from lmsbridge.domain.entities import IdentityMapping
from lmsbridge.infrastructure.persistence.models import IdentityMappingModel


class SQLiteIdentityMappingRepository:
    """SQLite 版 IdentityMappingRepository 実装

    ローカルユーザーとリモートユーザーの対応を SQLite データベースに保存する。
    書き込みは local_user_id 単位でアトミックに行われる。
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    async def save(self, mapping: IdentityMapping) -> None:
        """マッピングを保存する（upsert）

        同じ remote_user_id を別のローカルユーザーが持っている場合、
        その行は削除される。

        Args:
            mapping: 保存するマッピング
        """
        async with self._session_factory() as session:
            await session.execute(
                delete(IdentityMappingModel).where(
                    IdentityMappingModel.remote_user_id == mapping.remote_user_id,
                    IdentityMappingModel.local_user_id != mapping.local_user_id,
                )
            )
            result = await session.exec(
                select(IdentityMappingModel).where(
                    IdentityMappingModel.local_user_id == mapping.local_user_id
                )
            )
            existing = result.first()

            if existing:
                # 更新
                existing.remote_user_id = mapping.remote_user_id
                existing.updated_at = datetime.now(timezone.utc)
                session.add(existing)
            else:
                # 新規作成
                session.add(self._to_model(mapping))

            await session.commit()

    async def find_by_local_user_id(self, local_user_id: int) -> IdentityMapping | None:
        """ローカルユーザー ID でマッピングを検索する

        Args:
            local_user_id: ローカルユーザー ID

        Returns:
            マッピング（存在しない場合は None）
        """
        async with self._session_factory() as session:
            result = await session.exec(
                select(IdentityMappingModel).where(
                    IdentityMappingModel.local_user_id == local_user_id
                )
            )
            model = result.first()
            if model is None:
                return None
            return self._to_entity(model)

    async def find_by_remote_user_id(self, remote_user_id: str) -> IdentityMapping | None:
        """リモートユーザー ID でマッピングを検索する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(IdentityMappingModel).where(
                    IdentityMappingModel.remote_user_id == remote_user_id
                )
            )
            model = result.first()
            if model is None:
                return None
            return self._to_entity(model)

    async def delete(self, local_user_id: int) -> None:
        """マッピングを削除する

        Args:
            local_user_id: ローカルユーザー ID
        """
        async with self._session_factory() as session:
            await session.execute(
                delete(IdentityMappingModel).where(
                    IdentityMappingModel.local_user_id == local_user_id
                )
            )
            await session.commit()

    def _to_entity(self, model: IdentityMappingModel) -> IdentityMapping:
        return IdentityMapping(
            local_user_id=model.local_user_id,
            remote_user_id=model.remote_user_id,
        )

    def _to_model(self, entity: IdentityMapping) -> IdentityMappingModel:
        return IdentityMappingModel(
            local_user_id=entity.local_user_id,
            remote_user_id=entity.remote_user_id,
        )
