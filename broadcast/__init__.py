"""Pose broadcast to TCP subscribers."""

from .connection import Connection, SocketConnection
from .fanout import BroadcastFanOut, format_pose_line, parse_pose_line
from .listener import PoseListener
from .registry import ConnectionRegistry

__all__ = [
    "BroadcastFanOut",
    "Connection",
    "ConnectionRegistry",
    "PoseListener",
    "SocketConnection",
    "format_pose_line",
    "parse_pose_line",
]
