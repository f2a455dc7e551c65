# src/ledgertest/ibc/integration.py
from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from ledgertest.ibc.chain import TestChain, new_test_chain
from ledgertest.ibc.coordinator import GLOBAL_START_TIME, Coordinator
from ledgertest.ibc.path import Path, new_transfer_path
from ledgertest.ledger.address import DEFAULT_PREFIXES, AddressPrefixes
from ledgertest.ledger.constants import DUMMY_CHAIN_ID_PREFIX
from ledgertest.network.network import UnitTestNetwork
from ledgertest.structured_logging import log_event

log = logging.getLogger("ledgertest.ibc")

# A path needs two chains; missing ones are filled with dummy chains.
MIN_CHAINS = 2


def get_ibc_chains(coord: Coordinator, networks: Sequence[UnitTestNetwork]) -> Dict[str, TestChain]:
    return {n.chain_id(): n.get_ibc_chain(coord) for n in networks}


def generate_dummy_chains(
    coord: Coordinator,
    number_of_chains: int,
    *,
    prefixes: AddressPrefixes = DEFAULT_PREFIXES,
) -> Tuple[Dict[str, TestChain], List[str]]:
    """Counterparty chains for paths: ids `dummychain-1..n`, foreign prefixes.

    Using a prefix other than the app's keeps dummy module accounts from
    colliding with the configured chains' addresses.
    """
    chains: Dict[str, TestChain] = {}
    ids: List[str] = []
    for i in range(1, int(number_of_chains) + 1):
        chain_id = f"{DUMMY_CHAIN_ID_PREFIX}{i}"
        ids.append(chain_id)
        chains[chain_id] = new_test_chain(coord, chain_id, prefixes=prefixes)

    log_event(log, "dummy_chains_generated", count=len(ids), chain_ids=ids, prefix=prefixes.account_addr)
    return chains, ids


def merge_chains(a: Mapping[str, TestChain], b: Mapping[str, TestChain]) -> Dict[str, TestChain]:
    """Union of both mappings; on a shared chain id the entry from `b` wins."""
    out = dict(a)
    out.update(b)
    return out


class IntegrationCoordinator:
    """Coordinator over pre-configured networks plus dummy counterparties."""

    def __init__(self, networks: Sequence[UnitTestNetwork], *, dummy_chains: Optional[int] = None) -> None:
        # Start no earlier than the latest block any network already committed.
        start = max([GLOBAL_START_TIME] + [n.signed_header().header.time for n in networks])
        self.coordinator = Coordinator(start_time=start)
        chains = get_ibc_chains(self.coordinator, networks)

        n_dummy = max(0, MIN_CHAINS - len(networks)) if dummy_chains is None else int(dummy_chains)
        self._dummy_ids: List[str] = []
        if n_dummy > 0:
            dummies, self._dummy_ids = generate_dummy_chains(self.coordinator, n_dummy)
            chains = merge_chains(chains, dummies)

        self.coordinator.set_chains(chains)

    def get_chain(self, chain_id: str) -> TestChain:
        return self.coordinator.get_chain(chain_id)

    def get_dummy_chains_ids(self) -> List[str]:
        return list(self._dummy_ids)

    def commit_all(self) -> None:
        """One block on every chain and a single clock increment."""
        self.coordinator.commit_block(*[self.coordinator.chains[c] for c in self.coordinator.chain_ids()])

    def new_transfer_path(self, chain_a_id: str, chain_b_id: str) -> Path:
        return new_transfer_path(self.get_chain(chain_a_id), self.get_chain(chain_b_id))

    def setup(self, chain_a_id: str, chain_b_id: str) -> Path:
        path = self.new_transfer_path(chain_a_id, chain_b_id)
        self.coordinator.setup(path)
        return path
