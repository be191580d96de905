"""Backend strategies module."""
from .base import AdminAPI, AuthAPI, Backend, BackendError, QueryResult, TableQuery
from .gateway import BackendGateway, GatewayState
from .hosted import HostedBackend
from .local import LocalBackend

__all__ = [
    "AdminAPI",
    "AuthAPI",
    "Backend",
    "BackendError",
    "BackendGateway",
    "GatewayState",
    "HostedBackend",
    "LocalBackend",
    "QueryResult",
    "TableQuery",
]
