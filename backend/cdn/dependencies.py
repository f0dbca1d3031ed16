"""FastAPI dependencies for process-wide services.

The lifespan in ``cdn.main`` puts one instance of each on ``app.state``;
routes only ever receive them through these functions.
"""
from fastapi import Request

from cdn.services.embeds import EmbedResolver, HttpClient
from cdn.services.file_storage import FileStorage


def get_storage(request: Request) -> FileStorage:
    return request.app.state.storage


def get_http(request: Request) -> HttpClient:
    return request.app.state.http


def get_resolver(request: Request) -> EmbedResolver:
    return EmbedResolver(get_http(request))
