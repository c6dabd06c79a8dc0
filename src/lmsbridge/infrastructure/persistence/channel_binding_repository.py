"""SQLite implementation of ChannelBindingRepository."""

from collections.abc import Callable, Iterable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlalchemy import delete
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from lmsbridge.domain.entities import ChannelBinding
from lmsbridge.infrastructure.persistence.models import ChannelBindingModel


def _join_role_ids(role_ids: Iterable[int]) -> str:
    return ",".join(str(role_id) for role_id in sorted(role_ids))


def _split_role_ids(value: str) -> frozenset[int]:
    return frozenset(int(item) for item in value.split(",") if item.strip())


class SQLiteChannelBindingRepository:
    """SQLite 版 ChannelBindingRepository 実装

    ロール ID の集合はカンマ区切り文字列として保存し、
    読み込み時に一度だけ集合に変換する。
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

    async def save(self, binding: ChannelBinding) -> None:
        """紐付けを保存する（upsert）

        既存の紐付けが存在する場合は更新する。channel_id は変更しない。

        Args:
            binding: 保存する紐付け
        """
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel).where(
                    ChannelBindingModel.channel_id == binding.channel_id
                )
            )
            existing = result.first()

            if existing:
                # 更新
                existing.instance_id = binding.instance_id
                existing.course_id = binding.course_id
                existing.group_id = binding.group_id
                existing.name = binding.name
                existing.admin_role_ids = _join_role_ids(binding.admin_role_ids)
                existing.member_role_ids = _join_role_ids(binding.member_role_ids)
                existing.recycle_bin_id = binding.recycle_bin_id
                existing.updated_at = datetime.now(timezone.utc)
                session.add(existing)
            else:
                # 新規作成
                session.add(self._to_model(binding))

            await session.commit()

    async def find_by_channel_id(self, channel_id: str) -> ChannelBinding | None:
        """チャンネル ID で紐付けを検索する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel).where(
                    ChannelBindingModel.channel_id == channel_id
                )
            )
            model = result.first()
            if model is None:
                return None
            return self._to_entity(model)

    async def find_course_channel(self, instance_id: int) -> ChannelBinding | None:
        """インスタンスのコースチャンネルを取得する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel).where(
                    ChannelBindingModel.instance_id == instance_id,
                    col(ChannelBindingModel.group_id).is_(None),
                )
            )
            model = result.first()
            if model is None:
                return None
            return self._to_entity(model)

    async def find_by_group(self, group_id: int) -> ChannelBinding | None:
        """グループチャンネルの紐付けを取得する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel).where(
                    ChannelBindingModel.group_id == group_id
                )
            )
            model = result.first()
            if model is None:
                return None
            return self._to_entity(model)

    async def find_by_course(self, course_id: int) -> list[ChannelBinding]:
        """コースに属する全ての紐付けを取得する

        コースチャンネルが先、グループチャンネルが後の順で返す。
        """
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel)
                .where(ChannelBindingModel.course_id == course_id)
                .order_by(
                    col(ChannelBindingModel.group_id).is_not(None),
                    col(ChannelBindingModel.instance_id),
                    col(ChannelBindingModel.id),
                )
            )
            return [self._to_entity(m) for m in result.all()]

    async def find_by_instance(self, instance_id: int) -> list[ChannelBinding]:
        """インスタンスが所有する全ての紐付けを取得する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel)
                .where(ChannelBindingModel.instance_id == instance_id)
                .order_by(
                    col(ChannelBindingModel.group_id).is_not(None),
                    col(ChannelBindingModel.id),
                )
            )
            return [self._to_entity(m) for m in result.all()]

    async def find_by_recycle_bin(self, recycle_bin_id: int) -> list[ChannelBinding]:
        """ごみ箱アイテムに保持されている紐付けを取得する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel).where(
                    ChannelBindingModel.recycle_bin_id == recycle_bin_id
                )
            )
            return [self._to_entity(m) for m in result.all()]

    async def find_all(self) -> list[ChannelBinding]:
        """全ての紐付けを取得する"""
        async with self._session_factory() as session:
            result = await session.exec(
                select(ChannelBindingModel).order_by(col(ChannelBindingModel.id))
            )
            return [self._to_entity(m) for m in result.all()]

    async def delete(self, channel_id: str) -> None:
        """紐付けを削除する

        Args:
            channel_id: リモートチャンネル ID
        """
        async with self._session_factory() as session:
            await session.execute(
                delete(ChannelBindingModel).where(
                    ChannelBindingModel.channel_id == channel_id
                )
            )
            await session.commit()

    def _to_entity(self, model: ChannelBindingModel) -> ChannelBinding:
        """モデルをエンティティに変換する"""
        return ChannelBinding(
            channel_id=model.channel_id,
            instance_id=model.instance_id,
            course_id=model.course_id,
            name=model.name,
            admin_role_ids=_split_role_ids(model.admin_role_ids),
            member_role_ids=_split_role_ids(model.member_role_ids),
            group_id=model.group_id,
            recycle_bin_id=model.recycle_bin_id,
        )

    def _to_model(self, entity: ChannelBinding) -> ChannelBindingModel:
        """エンティティをモデルに変換する"""
        return ChannelBindingModel(
            channel_id=entity.channel_id,
            instance_id=entity.instance_id,
            course_id=entity.course_id,
            group_id=entity.group_id,
            name=entity.name,
            admin_role_ids=_join_role_ids(entity.admin_role_ids),
            member_role_ids=_join_role_ids(entity.member_role_ids),
            recycle_bin_id=entity.recycle_bin_id,
        )
