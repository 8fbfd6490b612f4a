"""Core utilities shared across git-super."""

from git_super.core.async_utils import run_in_executor
from git_super.core.logging import setup_logging
from git_super.core.validators import parse_comma_separated


__all__ = [
    "parse_comma_separated",
    "run_in_executor",
    "setup_logging",
]
