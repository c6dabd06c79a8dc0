"""Channel name derivation."""

import re
from collections.abc import Mapping

from lmsbridge.domain.exceptions import EmptyChannelNameError

PLACEHOLDER_PATTERN = re.compile(r"\{\$a->([A-Za-z0-9_]+)\}")
BRACED_RUN_PATTERN = re.compile(r"\{[^{}]*\}")
WHITESPACE_PATTERN = re.compile(r"\s")
REPLACEMENT = "_"


def format_template(template: str, variables: Mapping[str, object]) -> str:
    """Substitute {$a->key} placeholders.

    Unknown placeholders and any other {...} run of the template are
    removed. Substituted values are inserted as they are.

    Args:
        template: Name template.
        variables: Placeholder values.

    Returns:
        The formatted string (case preserved).
    """

    def replace(match: re.Match[str]) -> str:
        placeholder = PLACEHOLDER_PATTERN.fullmatch(match.group(0))
        if placeholder is None or placeholder.group(1) not in variables:
            return ""
        return str(variables[placeholder.group(1)])

    return BRACED_RUN_PATTERN.sub(replace, template)


def sanitize_channel_name(name: str, invalid_chars_pattern: str | re.Pattern[str]) -> str:
    """Replace whitespace and invalid characters with underscores.

    Args:
        name: Raw channel name.
        invalid_chars_pattern: Regular expression matching forbidden characters.

    Returns:
        The sanitized name.

    Raises:
        EmptyChannelNameError: If the name has no valid character at all.
    """
    stripped = name.strip()
    valid = re.sub(invalid_chars_pattern, "", WHITESPACE_PATTERN.sub("", stripped))
    if not valid:
        raise EmptyChannelNameError(name)
    sanitized = WHITESPACE_PATTERN.sub(REPLACEMENT, stripped)
    return re.sub(invalid_chars_pattern, REPLACEMENT, sanitized)


class ChannelNameFormatter:
    """Derives deterministic channel names from LMS metadata.

    The same template and variables always produce the same name, so a
    restored course recomputes the identity of its original channel.
    """

    def __init__(self, invalid_chars_pattern: str) -> None:
        """Initialize the formatter.

        Args:
            invalid_chars_pattern: Regular expression of characters the
                chat server refuses in channel names.
        """
        self._invalid_chars = re.compile(invalid_chars_pattern)

    def format(self, template: str, variables: Mapping[str, object]) -> str:
        """Format, lower-case and sanitize a channel name.

        Raises:
            EmptyChannelNameError: If the sanitized name is empty.
        """
        return self.sanitize(format_template(template, variables).lower())

    def sanitize(self, name: str) -> str:
        """Sanitize a channel name with the configured pattern."""
        return sanitize_channel_name(name, self._invalid_chars)
