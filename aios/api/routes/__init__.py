"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from aios.api.routes import chat, expose, slack, whatsapp

__all__ = [
    "chat",
    "expose",
    "slack",
    "whatsapp",
]
