"""
comrade_wallet.ledger

Ledger service client package.

Responsibilities:
- Provide the single client boundary for calling the remote token ledger.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The orchestrator should depend on this boundary (not on HTTP directly).
