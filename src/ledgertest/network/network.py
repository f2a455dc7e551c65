# src/ledgertest/network/network.py
from __future__ import annotations

"""Single-chain unit-test network.

Builds a validator set, funds the configured accounts, composes the full
genesis, initializes the app and commits the first block. The network then
advances one block at a time on request; nothing runs in the background.
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional

from ledgertest.crypto.keys import PrivValidator
from ledgertest.genesis.builders import (
    build_balances,
    create_genesis_accounts,
    create_validator_set,
    get_acc_addrs_from_balances,
)
from ledgertest.genesis.composer import GenesisInputs, compose_genesis
from ledgertest.genesis.registry import consensus_override
from ledgertest.ibc.chain import TestChain
from ledgertest.ibc.coordinator import Coordinator
from ledgertest.ledger.constants import ATTO_POWER_REDUCTION, BLOCK_TIME_INCREMENT, tokens_from_consensus_power
from ledgertest.ledger.decimals import EvmCoinInfo
from ledgertest.network.config import NetworkConfig, Option, apply_options, default_network_config, validate_network_config
from ledgertest.runtime.app import LedgerApp, serialize_app_state
from ledgertest.runtime.block import Header, SignedHeader, ValidatorSet, next_header, sign_header
from ledgertest.structured_logging import log_event

log = logging.getLogger("ledgertest.network")


def _display_denom(denom: str) -> str:
    # aatom -> atom, uosmo -> osmo
    if len(denom) > 3 and denom[0] in ("a", "u"):
        return denom[1:]
    return denom


class UnitTestNetwork:
    def __init__(self, cfg: NetworkConfig) -> None:
        validate_network_config(cfg)
        self.cfg = cfg

        self._validators, self._signers = create_validator_set(cfg.amount_of_validators)
        self.app = LedgerApp(
            cfg.chain_id,
            prefixes=cfg.prefixes,
            coin_info=EvmCoinInfo(denom=cfg.denom, display_denom=_display_denom(cfg.denom), decimals=cfg.decimals),
        )

        acc_codec = self.app.account_codec()
        if cfg.balances:
            balances = list(cfg.balances)
            accounts = get_acc_addrs_from_balances(balances, acc_codec)
        else:
            accounts = list(cfg.pre_funded_accounts)
            balances = build_balances(accounts, cfg.denom_decimals(), acc_codec)

        genesis = compose_genesis(
            self.app,
            GenesisInputs(
                validators=self._validators,
                gen_accounts=create_genesis_accounts(accounts, acc_codec),
                funded_balances=balances,
                denom=cfg.denom,
                bonded_amount=tokens_from_consensus_power(1, ATTO_POWER_REDUCTION),
                operator_addresses=cfg.operators_addresses,
                base_fee=cfg.base_fee,
                custom_genesis=cfg.custom_genesis,
            ),
        )

        self.app.init_chain(
            serialize_app_state(genesis),
            self._validators,
            genesis_time=cfg.genesis_time,
            consensus_params=consensus_override(cfg.custom_genesis),
        )

        vals_hash = self._validators.hash()
        first = Header(
            chain_id=cfg.chain_id,
            height=1,
            time=cfg.genesis_time,
            app_hash=self.app.app_hash,
            validators_hash=vals_hash,
            next_validators_hash=vals_hash,
        )
        self._last_header: Optional[Header] = None
        # Pending header: the next block to be committed.
        self._header = first
        self._commit_pending(timedelta(0))

        log_event(
            log,
            "network_started",
            chain_id=cfg.chain_id,
            validators=len(self._validators),
            accounts=len(accounts),
            height=self.app.last_block_height,
        )

    def _commit_pending(self, delta: timedelta) -> Header:
        header = self._header.with_time(self._header.time + delta)
        self.app.finalize_block(header)
        app_hash = self.app.commit()
        self._last_header = header
        self._header = next_header(header, app_hash=app_hash)
        return header

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def next_block(self) -> Header:
        return self.next_block_after(BLOCK_TIME_INCREMENT)

    def next_block_after(self, delta: timedelta) -> Header:
        """Commit the pending block `delta` after the previous block's time."""
        if delta < timedelta(0):
            raise ValueError(f"block time delta must be >= 0; got: {delta}")
        return self._commit_pending(delta)

    # ------------------------------------------------------------------
    # Getters
    # ------------------------------------------------------------------

    def chain_id(self) -> str:
        return self.cfg.chain_id

    def denom(self) -> str:
        return self.cfg.denom

    def other_denoms(self) -> List[str]:
        return list(self.cfg.other_coin_denoms)

    def validators(self) -> ValidatorSet:
        return self._validators

    def signers(self) -> Dict[str, PrivValidator]:
        return dict(self._signers)

    def header(self) -> Header:
        return self._header

    def last_block_height(self) -> int:
        return self.app.last_block_height

    def signed_header(self) -> SignedHeader:
        assert self._last_header is not None
        return sign_header(self._last_header, self._validators, self._signers)

    def get_ibc_chain(self, coord: Coordinator) -> TestChain:
        """This network as a TestChain driven by `coord`.

        The chain shares the network's app, so from here on blocks must be
        committed through the chain (the coordinator), not the network.
        """
        return TestChain(
            coordinator=coord,
            chain_id=self.chain_id(),
            app=self.app,
            current_header=self._header.with_time(coord.current_time),
            vals=self._validators,
            signers=self._signers,
            last_header=self.signed_header(),
        )


def new_unit_test_network(*opts: Option) -> UnitTestNetwork:
    return UnitTestNetwork(apply_options(default_network_config(), *opts))
