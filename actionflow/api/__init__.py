"""
API package - FastAPI routes and schemas.
"""

from actionflow.api.routes import actions, websocket, workflows

__all__ = ["actions", "websocket", "workflows"]
