"""Scheduled future recalls for AI agents: an orchestrator keeping a registry and a scheduler in sync, agent-facing tools, and a PostgreSQL registry."""

__version__ = "0.1.0"