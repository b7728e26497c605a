"""
Core functionality for qx
"""

from .llm import LLMProvider, LLMManager, FollowUpContext
from .guard import SecretGuard, GuardResult, check_query
from .executor import CommandExecutor, ExecutionResult
from .history import HistoryStore, HistoryEntry

__all__ = [
    "LLMProvider",
    "LLMManager",
    "FollowUpContext",
    "SecretGuard",
    "GuardResult",
    "check_query",
    "CommandExecutor",
    "ExecutionResult",
    "HistoryStore",
    "HistoryEntry",
]
