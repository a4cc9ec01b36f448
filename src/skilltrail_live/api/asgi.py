"""ASGI entrypoint for the live challenge API."""

from skilltrail_live.api.app import create_app
from skilltrail_live.containers import build_container

app = create_app(build_container())
