"""HTTP layer: FastAPI app exposing the orchestrator as a chat-completion endpoint."""

from convollm.server.app import create_app

__all__ = ["create_app"]
