"""
comrade_wallet.persistence

Local snapshot persistence.

Responsibilities:
- SQLAlchemy async engine/session helpers.
- Snapshot storage implementations used by the session store.
- Delegation storage used by the identity provider.
"""

# Package marker.
