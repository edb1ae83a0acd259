"""Core gateway functionality.

Provides:
- Configuration loaded from the environment
- The error taxonomy reported to callers
"""

from .config import Config, load_config
from .errors import (
    ExecutionError,
    GatewayError,
    InternalError,
    InvalidParamsError,
    MissingFieldsError,
    ProposalNotFoundError,
    ToolNotFoundError,
)

__all__ = [
    "Config",
    "load_config",
    "ExecutionError",
    "GatewayError",
    "InternalError",
    "InvalidParamsError",
    "MissingFieldsError",
    "ProposalNotFoundError",
    "ToolNotFoundError",
]
