"""Repositories for data access operations."""

from ruleflow.repositories.automation_repository import AutomationRepository

__all__ = ["AutomationRepository"]
