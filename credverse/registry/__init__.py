"""
Append-only credential registry.

Public API:
    - ``RegistryClient``: anchor / lookup / revoke with retry and timeouts
    - ``LedgerBackend`` protocol, ``LedgerResponse``, ``LedgerErrorCode``
    - ``InMemoryLedger``, ``SqliteLedger``: reference ledgers
    - ``RegistryEntry``, ``AnchorReceipt``, ``RevocationReceipt``
"""

from credverse.registry.backend import LedgerBackend, LedgerErrorCode, LedgerResponse
from credverse.registry.client import RegistryClient
from credverse.registry.entry import AnchorReceipt, RegistryEntry, RevocationReceipt
from credverse.registry.errors import raise_for_response
from credverse.registry.memory import InMemoryLedger
from credverse.registry.sqlite import SqliteLedger

__all__ = [
    "AnchorReceipt",
    "InMemoryLedger",
    "LedgerBackend",
    "LedgerErrorCode",
    "LedgerResponse",
    "RegistryClient",
    "RegistryEntry",
    "RevocationReceipt",
    "SqliteLedger",
    "raise_for_response",
]
