"""client/ -- Session Guard for command-line and test clients.

Holds the bearer token locally, attaches it to outgoing requests, and sends
the caller to the kind's login view whenever the server refuses it.

Layer rule: client/ talks to the server over HTTP only. It imports from
auth.models for the PrincipalKind enum and nothing from api/ or ledger/.
"""

from client.session import LOGIN_VIEWS, Admitted, ClientSession, Denied, Redirect, SessionGuard
from client.storage import TokenStorage

__all__ = [
    "LOGIN_VIEWS",
    "Admitted",
    "ClientSession",
    "Denied",
    "Redirect",
    "SessionGuard",
    "TokenStorage",
]
