"""Local observation endpoint for sightline.

A FastAPI application that exposes the session orchestrator's commands,
snapshots and change events to a view running in another process.
"""

from sightline.endpoint.server import create_app, serve

__all__ = ["create_app", "serve"]
