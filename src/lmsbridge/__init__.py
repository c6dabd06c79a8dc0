"""Mattermost channel membership synchronization for Moodle."""
