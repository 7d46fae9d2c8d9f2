"""
API routes - workflow, action and WebSocket endpoints.
"""
