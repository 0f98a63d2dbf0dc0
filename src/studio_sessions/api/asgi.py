"""ASGI entrypoint for the studio sessions API."""

from studio_sessions.api.app import create_app
from studio_sessions.containers import build_container

app = create_app(build_container())
