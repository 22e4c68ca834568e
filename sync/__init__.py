"""
Sync module for the Guesty data system.
"""

from .api_client import GuestyAPIClient
from .token_manager import TokenManager, TokenState
from .sync_manager import SyncOrchestrator, build_orchestrator
from .webhooks import WebhookProcessor

__all__ = [
    'GuestyAPIClient',
    'TokenManager',
    'TokenState',
    'SyncOrchestrator',
    'build_orchestrator',
    'WebhookProcessor'
]
