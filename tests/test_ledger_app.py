from __future__ import annotations

from datetime import timedelta

import pytest

from ledgertest.genesis.builders import build_balances, create_genesis_accounts, create_validator_set
from ledgertest.genesis.composer import GenesisInputs, compose_genesis
from ledgertest.ledger.coins import Coin
from ledgertest.ledger.constants import EXAMPLE_CHAIN_ID, GENESIS_TIME
from ledgertest.ledger.types import AuthGenesis, BankGenesis, ConsensusParams
from ledgertest.runtime.app import GenesisState, LedgerApp, serialize_app_state
from ledgertest.runtime.block import Header, ValidatorSet
from ledgertest.runtime.errors import AppError


def _mk_genesis(app: LedgerApp, **kw) -> tuple[GenesisState, ValidatorSet]:
    vals, _ = create_validator_set(1, label="app")
    codec = app.account_codec()
    accounts = [b"\x01" * 20]
    gen_accounts = create_genesis_accounts(accounts, codec)
    genesis = compose_genesis(
        app,
        GenesisInputs(
            validators=vals,
            gen_accounts=gen_accounts,
            funded_balances=build_balances(accounts, {"aatom": 18}, codec),
            denom="aatom",
            bonded_amount=10**6,
            **kw,
        ),
    )
    return genesis, vals


def _mk_initialized_app() -> LedgerApp:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    genesis, vals = _mk_genesis(app)
    app.init_chain(serialize_app_state(genesis), vals, genesis_time=GENESIS_TIME)
    return app


def _mk_header(height: int, chain_id: str = EXAMPLE_CHAIN_ID) -> Header:
    return Header(chain_id=chain_id, height=height, time=GENESIS_TIME + timedelta(seconds=5 * height))


def test_init_chain_sets_state() -> None:
    app = _mk_initialized_app()
    assert app.last_block_height == 0
    assert app.app_hash
    assert app.genesis_time == GENESIS_TIME
    assert app.consensus_params == ConsensusParams()
    assert isinstance(app.module_genesis("bank"), BankGenesis)


def test_init_chain_twice_fails() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    genesis, vals = _mk_genesis(app)
    app.init_chain(serialize_app_state(genesis), vals, genesis_time=GENESIS_TIME)
    with pytest.raises(AppError) as ei:
        app.init_chain(serialize_app_state(genesis), vals, genesis_time=GENESIS_TIME)
    assert ei.value.code == "already_initialized"


def test_init_chain_consensus_params() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    genesis, vals = _mk_genesis(app)
    app.init_chain(
        serialize_app_state(genesis),
        vals,
        genesis_time=GENESIS_TIME,
        consensus_params=ConsensusParams(block_max_gas=42),
    )
    assert app.consensus_params is not None
    assert app.consensus_params.block_max_gas == 42


def test_missing_module_is_rejected() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    genesis, vals = _mk_genesis(app)
    del genesis["evm"]
    with pytest.raises(AppError) as ei:
        app.init_chain(serialize_app_state(genesis), vals, genesis_time=GENESIS_TIME)
    assert ei.value.code == "missing_module_genesis"


def test_invalid_json_is_rejected() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    _, vals = _mk_genesis(app)
    with pytest.raises(AppError) as ei:
        app.init_chain(b"{not json", vals, genesis_time=GENESIS_TIME)
    assert ei.value.code == "invalid_genesis"


def test_supply_mismatch_is_rejected() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    genesis, vals = _mk_genesis(app)
    bank = app.codec.unmarshal_json(genesis["bank"], BankGenesis)
    bank.supply = [Coin(denom="aatom", amount=1)]
    genesis["bank"] = app.codec.marshal_json(bank)

    with pytest.raises(AppError) as ei:
        app.init_chain(serialize_app_state(genesis), vals, genesis_time=GENESIS_TIME)
    assert ei.value.code == "supply_mismatch"


def test_duplicate_account_is_rejected() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    codec = app.account_codec()
    dup = create_genesis_accounts([b"\x01" * 20], codec)
    genesis, vals = _mk_genesis(app, custom_genesis={"auth": AuthGenesis(accounts=dup)})

    with pytest.raises(AppError) as ei:
        app.init_chain(serialize_app_state(genesis), vals, genesis_time=GENESIS_TIME)
    assert ei.value.code == "duplicate_account"


def test_validator_set_must_match_staking() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    genesis, _ = _mk_genesis(app)
    other, _ = create_validator_set(1, label="someone-else")

    with pytest.raises(AppError) as ei:
        app.init_chain(serialize_app_state(genesis), other, genesis_time=GENESIS_TIME)
    assert ei.value.code == "validator_set_mismatch"


def test_blocks_commit_in_order() -> None:
    app = _mk_initialized_app()
    genesis_hash = app.app_hash

    app.finalize_block(_mk_header(1))
    h1 = app.commit()
    assert app.last_block_height == 1
    assert h1 != genesis_hash

    app.finalize_block(_mk_header(2))
    h2 = app.commit()
    assert app.last_block_height == 2
    assert h2 != h1


def test_block_errors() -> None:
    app = LedgerApp(EXAMPLE_CHAIN_ID)
    with pytest.raises(AppError) as ei:
        app.finalize_block(_mk_header(1))
    assert ei.value.code == "not_initialized"

    app = _mk_initialized_app()
    with pytest.raises(AppError) as ei:
        app.finalize_block(_mk_header(2))
    assert ei.value.code == "invalid_height"

    with pytest.raises(AppError) as ei:
        app.finalize_block(_mk_header(1, chain_id="other-1"))
    assert ei.value.code == "chain_id_mismatch"

    with pytest.raises(AppError) as ei:
        app.commit()
    assert ei.value.code == "nothing_to_commit"
