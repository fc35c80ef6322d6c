"""
Adapters layer - External integrations (Supabase, Resend).
"""

from .email_notifier import MockNotifier, ResendNotifier
from .mock_backend import MockBackend
from .supabase_authenticator import SupabaseAuthenticator
from .supabase_client import SupabaseClient

__all__ = [
    "MockBackend",
    "MockNotifier",
    "ResendNotifier",
    "SupabaseAuthenticator",
    "SupabaseClient",
]
