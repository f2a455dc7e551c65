from __future__ import annotations

from datetime import timedelta

import pytest

from ledgertest.ibc.chain import TestChain, new_test_chain
from ledgertest.ibc.coordinator import GLOBAL_START_TIME, Coordinator
from ledgertest.ledger.address import DEFAULT_PREFIXES
from ledgertest.ledger.constants import EXAMPLE_ATTO_DENOM
from ledgertest.ledger.types import StakingGenesis
from ledgertest.runtime.block import SignedHeader
from ledgertest.runtime.errors import AppError


def test_new_chain_starts_at_height_two() -> None:
    coord = Coordinator()
    chain = new_test_chain(coord, "ledgertest_9000-1")

    assert chain.height() == 2
    assert chain.app.last_block_height == 1
    assert chain.last_header is not None
    assert chain.last_header.header.height == 1
    # the mandatory first commit advanced the shared clock once
    assert coord.current_time == GLOBAL_START_TIME + timedelta(seconds=5)


def test_new_chain_has_single_validator_and_funded_sender() -> None:
    chain = new_test_chain(Coordinator(), "ledgertest_9000-1")

    assert len(chain.vals) == 1
    assert set(chain.signers) == {v.address.hex().upper() for v in chain.vals}
    assert chain.sender_key is not None
    assert chain.sender_account is not None
    assert chain.sender_account.address.startswith("ledger1")
    assert chain.app.balance(chain.sender_account.address, EXAMPLE_ATTO_DENOM) == 10**18

    staking = chain.app.module_genesis("staking")
    assert isinstance(staking, StakingGenesis)
    assert [v.consensus_pubkey for v in staking.validators] == [v.pub_key for v in chain.vals]


def test_signed_header_verifies_against_validator_set() -> None:
    chain = new_test_chain(Coordinator(), "ledgertest_9000-1")
    signed = chain.signed_header()

    assert signed.verify()
    assert signed.header.validators_hash == chain.vals.hash()

    unsigned = SignedHeader(header=signed.header, validator_set=signed.validator_set, signatures={})
    assert not unsigned.verify()


def test_next_block_commits_current_header() -> None:
    chain = new_test_chain(Coordinator(), "ledgertest_9000-1")
    pending = chain.current_header

    chain.next_block()

    assert chain.height() == 3
    assert chain.signed_header().header == pending
    assert chain.current_header.last_block_hash == pending.hash()
    assert chain.current_header.app_hash == chain.app.app_hash


def test_chain_prefixes_are_explicit() -> None:
    coord = Coordinator()
    dummy = new_test_chain(coord, "dummychain-1", prefixes=DEFAULT_PREFIXES)
    app_chain = new_test_chain(coord, "ledgertest_9000-1")

    assert dummy.sender_account is not None and dummy.sender_account.address.startswith("cosmos1")
    assert app_chain.sender_account is not None and app_chain.sender_account.address.startswith("ledger1")
    assert dummy.prefixes == DEFAULT_PREFIXES


def test_signed_header_before_first_commit() -> None:
    chain = new_test_chain(Coordinator(), "ledgertest_9000-1")
    fresh = TestChain(
        coordinator=chain.coordinator,
        chain_id=chain.chain_id,
        app=chain.app,
        current_header=chain.current_header,
        vals=chain.vals,
        signers=chain.signers,
    )
    with pytest.raises(AppError) as ei:
        fresh.signed_header()
    assert ei.value.code == "no_committed_header"
