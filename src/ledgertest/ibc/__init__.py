# src/ledgertest/ibc/__init__.py
"""
ledgertest: multi-chain (IBC) testing package

  - store: per-chain light clients, connections and channels
  - chain: TestChain and the single-validator chain factory
  - coordinator: shared logical clock and chain ownership
  - path: endpoints, paths and the in-process handshake
  - integration: unit-test networks plus dummy counterparty chains

Chains never talk to each other directly; every cross-chain step goes through
a Path and is committed by the Coordinator.
"""

from __future__ import annotations

__all__ = [
    "store",
    "chain",
    "coordinator",
    "path",
    "integration",
]
