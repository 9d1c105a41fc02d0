"""
comrade_wallet.api

Local HTTP surface for the wallet controller.

Responsibilities:
- App factory, dependency wiring, and routers a UI can drive.
"""

# Package marker.
