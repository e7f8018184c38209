"""Utility functions for gphoto-cli."""

from .ascii_art import render, render_file, render_placeholder
from .auth import AuthFlowEngine
from .file_utils import cleanup_older_than, download, get_file_info
from .media_urls import high_res_url, thumbnail_url
from .token_store import TokenStore
from .waiting import WaitOutcome, WaitStatus, wait_for

__all__ = [
    "AuthFlowEngine",
    "TokenStore",
    "WaitOutcome",
    "WaitStatus",
    "wait_for",
    "thumbnail_url",
    "high_res_url",
    "download",
    "cleanup_older_than",
    "get_file_info",
    "render",
    "render_file",
    "render_placeholder",
]
