"""Identity mapping repository protocol."""

from typing import Protocol

from lmsbridge.domain.entities import IdentityMapping


class IdentityMappingRepository(Protocol):
    """ID マッピングリポジトリの抽象インターフェース

    ローカルユーザー ID とリモートユーザー ID の対応を保存・取得する。
    local_user_id をキーとし、remote_user_id も一意とする。
    """

    async def save(self, mapping: IdentityMapping) -> None:
        """マッピングを保存する（upsert）

        同じ remote_user_id を持つ別ユーザーの行は削除される。

        Args:
            mapping: 保存するマッピング
        """
        ...

    async def find_by_local_user_id(self, local_user_id: int) -> IdentityMapping | None:
        """ローカルユーザー ID でマッピングを検索する

        Args:
            local_user_id: ローカルユーザー ID

        Returns:
            マッピング（存在しない場合は None）
        """
        ...

    async def find_by_remote_user_id(self, remote_user_id: str) -> IdentityMapping | None:
        """リモートユーザー ID でマッピングを検索する"""
        ...

    async def delete(self, local_user_id: int) -> None:
        """マッピングを削除する

        Args:
            local_user_id: ローカルユーザー ID
        """
        ...
