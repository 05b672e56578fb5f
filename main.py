"""WSGI entrypoint for the recipe catalog.

Run locally with ``flask --app main run``; production deployments point a
WSGI server such as Gunicorn at the ``app`` object below. The storage backend
is chosen through the ``RECIPE_SOURCE`` and ``RECIPE_STORE`` environment
variables.
"""

from recipe_catalog import create_app

app = create_app()


__all__ = ["app"]
