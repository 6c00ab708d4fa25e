"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import channels, webhooks

__all__ = [
    "channels",
    "webhooks",
]
