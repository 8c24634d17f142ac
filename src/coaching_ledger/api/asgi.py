"""ASGI entrypoint for the coaching ledger API."""

from coaching_ledger.api.app import create_app
from coaching_ledger.containers import build_container

app = create_app(build_container())
