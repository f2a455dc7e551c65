# src/ledgertest/ibc/coordinator.py
from __future__ import annotations

"""Coordinator: owns a set of TestChains and their shared logical clock.

Every coordinated commit advances the clock by TIME_INCREMENT and stamps the
new time on the pending header of every owned chain, so chain clocks stay in
sync while heights diverge.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Dict, List, Mapping

from ledgertest.ibc.chain import TestChain, new_test_chain
from ledgertest.ledger.address import APP_PREFIXES, AddressPrefixes
from ledgertest.ledger.constants import BLOCK_TIME_INCREMENT, CHAIN_ID_PREFIX, CHAIN_ID_SUFFIX, GENESIS_TIME
from ledgertest.runtime.errors import ChainNotFound
from ledgertest.structured_logging import log_event

if TYPE_CHECKING:
    from ledgertest.ibc.path import Path

log = logging.getLogger("ledgertest.ibc")

GLOBAL_START_TIME: datetime = GENESIS_TIME
TIME_INCREMENT: timedelta = BLOCK_TIME_INCREMENT


@dataclass(frozen=True)
class ChainIdConvention:
    """Chain ids are `<prefix><index><suffix>`, indices starting at 1."""

    prefix: str = CHAIN_ID_PREFIX
    suffix: str = CHAIN_ID_SUFFIX

    def chain_id(self, index: int) -> str:
        return f"{self.prefix}{int(index)}{self.suffix}"


DEFAULT_CHAIN_ID_CONVENTION = ChainIdConvention()


class Coordinator:
    def __init__(self, *, start_time: datetime = GLOBAL_START_TIME) -> None:
        self.current_time = start_time
        self.chains: Dict[str, TestChain] = {}

    def _check_owned(self, chain_id: str, chain: TestChain) -> None:
        if chain.coordinator is not self:
            raise ValueError(f"chain {chain.chain_id} is driven by another coordinator")
        if chain_id != chain.chain_id:
            raise ValueError(f"chain {chain.chain_id} registered under id {chain_id}")

    def add_chain(self, chain: TestChain) -> None:
        self._check_owned(chain.chain_id, chain)
        if chain.chain_id in self.chains:
            raise ValueError(f"chain {chain.chain_id} already registered")
        self.update_time_for_chain(chain)
        self.chains[chain.chain_id] = chain

    def set_chains(self, chains: Mapping[str, TestChain]) -> None:
        """Replace the owned chains wholesale (e.g. after a merge)."""
        for chain_id, chain in chains.items():
            self._check_owned(chain_id, chain)
        for chain in chains.values():
            self.update_time_for_chain(chain)
        self.chains = dict(chains)

    def get_chain(self, chain_id: str) -> TestChain:
        chain = self.chains.get(chain_id)
        if chain is None:
            raise ChainNotFound(chain_id)
        return chain

    def chain_ids(self) -> List[str]:
        return sorted(self.chains)

    # ------------------------------------------------------------------
    # Clock
    # ------------------------------------------------------------------

    def update_time(self) -> None:
        for chain in self.chains.values():
            self.update_time_for_chain(chain)

    def update_time_for_chain(self, chain: TestChain) -> None:
        """Stamp the coordinator time on `chain`'s pending header.

        Raises ValueError if that would date the next block before the
        chain's last committed one.
        """
        if chain.last_header is not None and self.current_time < chain.last_header.header.time:
            raise ValueError(
                f"coordinator time {self.current_time.isoformat()} is before the last block of "
                f"{chain.chain_id} ({chain.last_header.header.time.isoformat()})"
            )
        chain.current_header = chain.current_header.with_time(self.current_time)

    def increment_time_by(self, increment: timedelta) -> None:
        if increment < timedelta(0):
            raise ValueError(f"time increment must be >= 0; got: {increment}")
        self.current_time = self.current_time + increment
        self.update_time()
        log_event(
            log,
            "coordinator_time_advanced",
            level=logging.DEBUG,
            current_time=self.current_time.isoformat(),
            increment_s=increment.total_seconds(),
        )

    def increment_time(self) -> None:
        self.increment_time_by(TIME_INCREMENT)

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def commit_block(self, *chains: TestChain) -> None:
        """Commit one block on each given chain, then advance the clock once."""
        for chain in chains:
            chain.next_block()
        self.increment_time()

    def commit_n_blocks(self, chain: TestChain, n: int) -> None:
        for _ in range(int(n)):
            chain.next_block()
            self.increment_time()

    def setup(self, path: "Path") -> None:
        path.setup()


def new_coordinator(
    n: int,
    *,
    convention: ChainIdConvention = DEFAULT_CHAIN_ID_CONVENTION,
    prefixes: AddressPrefixes = APP_PREFIXES,
) -> Coordinator:
    """Coordinator owning `n` fresh chains named by `convention` (1-based)."""
    coord = Coordinator()
    for i in range(1, int(n) + 1):
        coord.add_chain(new_test_chain(coord, convention.chain_id(i), prefixes=prefixes))
    return coord
