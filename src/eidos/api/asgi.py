"""ASGI entrypoint for the eidos API."""

from eidos.api.app import create_app
from eidos.containers import build_container

app = create_app(build_container())
