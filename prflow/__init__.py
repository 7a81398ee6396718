"""prflow: pull-request automation for agent-driven code changes."""

__version__ = "0.1.0"
