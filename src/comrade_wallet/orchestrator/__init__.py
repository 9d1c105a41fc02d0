"""
comrade_wallet.orchestrator

Session/operation orchestration package.

Responsibilities:
- Session store (persisted principal + last balance).
- Notification sinks.
- The wallet state machine driving login/logout and token operations.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Call sites (API routers, tests) should go through `WalletOrchestrator`; the store and
# sinks are injected so each can be replaced independently.
