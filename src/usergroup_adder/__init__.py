"""Adds new Slack workspace members to predefined usergroups."""

__version__ = "0.1.0"
