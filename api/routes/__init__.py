"""
API Routes for the Alba conciergerie service.
"""

from . import ai, conversations, notifications, webhooks

__all__ = ["ai", "conversations", "notifications", "webhooks"]
