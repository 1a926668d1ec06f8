"""P2E Inferno relay: gasless EAS attestations, quest verification and DG withdrawals."""

__version__ = "0.1.0"
