"""Xero API access.

The client talks to the Xero accounting and payroll APIs; the handlers
translate normalized gateway arguments into Xero requests.
"""

from xero.auth import XeroTokenProvider
from xero.client import XeroClient
from xero.errors import XeroAPIError
from xero.handlers import all_factories

__all__ = [
    "XeroAPIError",
    "XeroClient",
    "XeroTokenProvider",
    "all_factories",
]
