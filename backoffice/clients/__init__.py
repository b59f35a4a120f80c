"""
Clients for the back-office API.
"""

from backoffice.clients.backoffice_api import BackofficeApiClient

__all__ = ["BackofficeApiClient"]
