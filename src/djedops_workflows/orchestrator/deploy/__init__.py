"""Hand-off of finalised workflows to an external deployment layer.

The core never signs or submits on-chain transactions itself: it builds a
deployment request and passes it to a `DeploySink`, and routes bridge
transfers through a `WalletAdapter`.
"""
