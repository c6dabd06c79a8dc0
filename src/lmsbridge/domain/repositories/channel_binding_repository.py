"""Channel binding repository protocol."""

from typing import Protocol

from lmsbridge.domain.entities import ChannelBinding


class ChannelBindingRepository(Protocol):
    """チャンネル紐付けリポジトリの抽象インターフェース

    LMS のスコープ（コース・グループ）とリモートチャンネルの対応を保存する。
    channel_id は一度割り当てられたら変更されない。
    """

    async def save(self, binding: ChannelBinding) -> None:
        """紐付けを保存する（channel_id をキーに upsert）

        Args:
            binding: 保存する紐付け
        """
        ...

    async def find_by_channel_id(self, channel_id: str) -> ChannelBinding | None:
        """チャンネル ID で紐付けを検索する"""
        ...

    async def find_course_channel(self, instance_id: int) -> ChannelBinding | None:
        """インスタンスのコースチャンネルを取得する

        Args:
            instance_id: コースモジュール ID

        Returns:
            コースチャンネルの紐付け（存在しない場合は None）
        """
        ...

    async def find_by_group(self, group_id: int) -> ChannelBinding | None:
        """グループチャンネルの紐付けを取得する"""
        ...

    async def find_by_course(self, course_id: int) -> list[ChannelBinding]:
        """コースに属する全ての紐付け（コース・グループ）を取得する

        コースチャンネルが先、グループチャンネルが後の順で返す。
        """
        ...

    async def find_by_instance(self, instance_id: int) -> list[ChannelBinding]:
        """インスタンスが所有する全ての紐付けを取得する"""
        ...

    async def find_by_recycle_bin(self, recycle_bin_id: int) -> list[ChannelBinding]:
        """ごみ箱アイテムに保持されている紐付けを取得する"""
        ...

    async def find_all(self) -> list[ChannelBinding]:
        """全ての紐付けを取得する"""
        ...

    async def delete(self, channel_id: str) -> None:
        """紐付けを削除する

        Args:
            channel_id: リモートチャンネル ID
        """
        ...
