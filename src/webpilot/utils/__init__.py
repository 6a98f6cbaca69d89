"""Utility modules for WebPilot."""

from .config import config, Config, AgentSettings, BrowserSettings
from .logger import log, console, shorten

__all__ = [
    'config',
    'Config',
    'AgentSettings',
    'BrowserSettings',
    'log',
    'console',
    'shorten'
]
