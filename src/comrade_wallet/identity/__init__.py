"""
comrade_wallet.identity

Identity collaborator boundary.

Responsibilities:
- Define the opaque `Identity` and the `IdentityProvider` capability set.
- Provide a delegation-token backed provider (JWT issued by the identity service).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The orchestrator depends only on `identity.provider`; concrete providers are wired
# in by the API composition root or by tests.
