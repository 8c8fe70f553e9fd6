"""Handler layer for HTTP endpoints.

This layer contains the HTTP request/response handlers.
Handlers depend on services (business logic), not directly on repositories.

Architecture:
    Handler -> Service -> Repository
    (HTTP)  -> (Business) -> (Data Access / Providers)
"""

from .admin_handler import AdminHandler
from .analysis_handler import AnalysisHandler, client_identity, envelope_response, to_domain

__all__ = [
    "AdminHandler",
    "AnalysisHandler",
    "client_identity",
    "envelope_response",
    "to_domain",
]
