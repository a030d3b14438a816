"""Outbound service clients.

All clients implement ``BaseIntegration``.
"""

from equipsearch.integrations.base import BaseIntegration
from equipsearch.integrations.search_index import SearchIndexClient
from equipsearch.integrations.sendgrid import EmailClient

__all__ = [
    "BaseIntegration",
    "EmailClient",
    "SearchIndexClient",
]
