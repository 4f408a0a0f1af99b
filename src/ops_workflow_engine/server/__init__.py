"""FastAPI server adapter for the workflow engine.

This module exposes a REST API over the engine services.

Design intent:
- Keep business logic in `ops_workflow_engine.engine.*`
- Keep server-specific concerns (routing, CORS, scheduler lifecycle) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from ops_workflow_engine.server.app import create_app
