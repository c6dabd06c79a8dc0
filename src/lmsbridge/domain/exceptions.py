"""Domain exceptions."""

# Message fragment the chat server returns when a channel name is already used.
CHANNEL_NAME_TAKEN_MESSAGE = "A channel with that name already exists on the same team"


def is_channel_name_taken(message: str) -> bool:
    """Check whether a remote error message reports a channel name collision.

    The remote server exposes no error code for this case, so the check
    matches the message text. The text is not guaranteed to be stable across
    server versions or locales.

    Args:
        message: Error message returned by the remote server.

    Returns:
        True if the message reports that the channel name is taken.
    """
    return CHANNEL_NAME_TAKEN_MESSAGE.lower() in (message or "").lower()


class RemoteServiceError(Exception):
    """リモートサーバー呼び出しの失敗

    HTTP ステータスが 2xx 以外の場合や、通信エラーが発生した場合に送出される。
    通信エラー・タイムアウトの場合 status_code は 0 になる。
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        """初期化

        Args:
            message: エラーメッセージ（レスポンスの error / message フィールド）
            status_code: HTTP ステータスコード
        """
        self.message = message
        self.status_code = status_code
        super().__init__(message or f"Remote call failed with status {status_code}")

    @property
    def is_not_found(self) -> bool:
        """Whether the remote server answered 404."""
        return self.status_code == 404


class ChannelCreationError(RemoteServiceError):
    """Raised when the remote server refuses to create a channel."""

    @property
    def name_taken(self) -> bool:
        """Whether the failure is a channel name collision."""
        return is_channel_name_taken(self.message)


class EmptyChannelNameError(ValueError):
    """Raised when a channel name is empty after sanitization."""

    def __init__(self, raw_name: str = "") -> None:
        self.raw_name = raw_name
        super().__init__(f"Sanitized channel name can't be empty (from '{raw_name}')")


class UnmappedUserError(Exception):
    """Raised when a local user has no known remote identity."""

    def __init__(self, local_user_id: int) -> None:
        self.local_user_id = local_user_id
        super().__init__(f"User {local_user_id} has no remote identity mapping")


class RemoteUserUnavailableError(Exception):
    """Raised when a remote account can neither be found nor created."""

    def __init__(self, email: str, message: str = "") -> None:
        self.email = email
        super().__init__(message or f"Remote user for {email} is not available")


class BindingNotFoundError(Exception):
    """Raised when no channel binding exists for the requested key."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"No channel binding for {key}")


class LmsServiceError(Exception):
    """Raised when the LMS web service call fails."""

    def __init__(self, message: str, error_code: str = "") -> None:
        self.error_code = error_code
        super().__init__(message)
