"""Crossbow HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application: the GitHub webhook receiver, JSON listing endpoints and
health probes.

Usage
-----
Create and run the application::

    from crossbow.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # receiver and listings

Public API
----------
create_app
    Application factory that registers health endpoints and, when
    dependencies are provided, the webhook receiver and listing endpoints.
"""

from crossbow.api.app import create_app

__all__ = ["create_app"]
