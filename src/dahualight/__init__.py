"""Python API and CLI for controlling IP camera illuminators over JSON-RPC."""

from dahualight.client import (
    Client,
    DahuaError,
    OperationResult,
    Session,
    SessionCache,
    StatusLevel,
    StatusUpdate,
)
from dahualight.commands import Command, LightMode, parse_command

__all__ = [
    "Client",
    "Command",
    "DahuaError",
    "LightMode",
    "OperationResult",
    "Session",
    "SessionCache",
    "StatusLevel",
    "StatusUpdate",
    "parse_command",
]
