"""auth/ -- Credential hashing, principal store, token issuance and the gate.

Layer rule: auth/ imports stdlib, third-party libraries and core/.
It does NOT import from api/, client/, or concrete ledger backends.
api/ imports from auth/, not the other way around.
"""
