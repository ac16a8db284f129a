"""ledger/ -- Revocation ledger for bearer tokens invalidated before expiry.

Layer rule: ledger/ imports stdlib, third-party libraries and core/. It does
NOT import from api/, auth/, or client/. The gate in auth/ depends on the
RevocationLedger interface, never on a concrete backend.
"""
