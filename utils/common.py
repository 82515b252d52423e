# utils/common.py
"""Common utilities: path management and input validation helpers"""
import os
from typing import Any, Dict

# ⚠️ DO NOT import settings here - causes circular import with config.py


# ============= Path Management =============

def get_project_root() -> str:
    """Returns the absolute path to the project's root directory."""
    return os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))


def get_log_file_path() -> str:
    """Creates the log directory if it doesn't exist and returns the full log file path."""
    project_root = get_project_root()
    log_dir = os.path.join(project_root, 'log')

    if not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)

    return os.path.join(log_dir, 'chat_rag.log')


# ============= Validation =============

def is_blank(value: Any) -> bool:
    """True for None, non-strings and whitespace-only strings."""
    return not isinstance(value, str) or not value.strip()


def describe_filter(filter_: Dict[str, Any]) -> str:
    """Compact, log-friendly rendering of a metadata filter."""
    return ", ".join(f"{key}={value!r}" for key, value in sorted(filter_.items())) or "<empty>"
