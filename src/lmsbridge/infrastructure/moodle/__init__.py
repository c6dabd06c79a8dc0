"""Moodle infrastructure."""

from lmsbridge.infrastructure.moodle.client import MoodleGateway, flatten_params

__all__ = ["MoodleGateway", "flatten_params"]
