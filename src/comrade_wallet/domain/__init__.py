"""
comrade_wallet.domain

Wallet domain package.

Responsibilities:
- Value types shared by the session store, ledger client and orchestrator.
- The wallet error taxonomy.
"""

# Package marker.
