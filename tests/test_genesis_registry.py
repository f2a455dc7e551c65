from __future__ import annotations

import pytest

from ledgertest.genesis.registry import (
    GenesisRegistry,
    ReplaceModuleGenesis,
    consensus_override,
    custom_genesis,
    default_registry,
)
from ledgertest.ledger.coins import Balance, Coin
from ledgertest.ledger.constants import EXAMPLE_CHAIN_ID
from ledgertest.ledger.types import (
    AuthGenesis,
    BankGenesis,
    ConsensusParams,
    GenesisAccount,
    GovGenesis,
    Metadata,
    MintGenesis,
    StakingGenesis,
)
from ledgertest.runtime.app import LedgerApp, check_supply_invariant
from ledgertest.runtime.errors import FatalSetupError, InvalidGenesisOverrideType


def _mk_app() -> LedgerApp:
    return LedgerApp(EXAMPLE_CHAIN_ID)


def test_default_registry_modules() -> None:
    reg = default_registry()
    assert reg.modules() == sorted(
        ["auth", "bank", "capability", "consensus", "distribution", "erc20", "evm", "feemarket", "gov", "mint"]
    )
    assert "staking" not in reg
    assert "slashing" not in reg


def test_bank_override_of_wrong_type_names_module_and_keeps_genesis() -> None:
    app = _mk_app()
    genesis = app.default_genesis()
    bank_before = genesis["bank"]

    with pytest.raises(InvalidGenesisOverrideType) as ei:
        default_registry().apply_overrides(app, genesis, {"bank": GovGenesis()})

    assert ei.value.module == "bank"
    assert ei.value.received_type == "GovGenesis"
    assert ei.value.code == "invalid_genesis_override"
    assert "bank" in str(ei.value)
    assert genesis["bank"] == bank_before


def test_unknown_module_aborts_setup() -> None:
    app = _mk_app()
    with pytest.raises(FatalSetupError) as ei:
        default_registry().apply_overrides(app, app.default_genesis(), {"staking": StakingGenesis()})
    assert str(ei.value) == "module staking not found in genesis setup functions"


def test_fatal_abort_is_not_an_exception() -> None:
    # `except Exception` in test helpers must not swallow a misconfiguration.
    app = _mk_app()
    with pytest.raises(SystemExit):
        try:
            default_registry().apply_overrides(app, app.default_genesis(), {"nope": object()})
        except Exception:  # pragma: no cover
            pytest.fail("fatal setup error was caught as an ordinary exception")


def test_replace_override_replaces_module_and_leaves_input_untouched() -> None:
    app = _mk_app()
    genesis = app.default_genesis()
    gov_before = genesis["gov"]

    out = default_registry().apply_overrides(app, genesis, {"gov": GovGenesis(starting_proposal_id=7)})

    assert app.codec.unmarshal_json(out["gov"], GovGenesis).starting_proposal_id == 7
    assert genesis["gov"] == gov_before
    assert out["mint"] == genesis["mint"]


def test_bank_override_appends_and_grows_supply() -> None:
    app = _mk_app()
    genesis = app.default_genesis()
    addr = app.account_codec().bytes_to_string(b"\x01" * 20)
    override = BankGenesis(
        balances=[Balance(address=addr, coins=[Coin(denom="aatom", amount=5)])],
        denom_metadata=[Metadata(base="aatom", display="atom")],
    )

    out = default_registry().apply_overrides(app, genesis, {"bank": override})

    bank = app.codec.unmarshal_json(out["bank"], BankGenesis)
    assert [b.address for b in bank.balances] == [addr]
    assert bank.supply == [Coin(denom="aatom", amount=5)]
    assert [m.base for m in bank.denom_metadata] == ["aatom"]
    check_supply_invariant(bank)


def test_bank_override_adds_to_existing_balances() -> None:
    app = _mk_app()
    reg = default_registry()
    codec = app.account_codec()
    first = BankGenesis(balances=[Balance(address=codec.bytes_to_string(b"\x01" * 20), coins=[Coin(denom="aatom", amount=5)])])
    second = BankGenesis(balances=[Balance(address=codec.bytes_to_string(b"\x02" * 20), coins=[Coin(denom="aatom", amount=3)])])

    out = reg.apply_overrides(app, app.default_genesis(), {"bank": first})
    out = reg.apply_overrides(app, out, {"bank": second})

    bank = app.codec.unmarshal_json(out["bank"], BankGenesis)
    assert len(bank.balances) == 2
    assert bank.supply == [Coin(denom="aatom", amount=8)]


def test_auth_override_appends_accounts() -> None:
    app = _mk_app()
    codec = app.account_codec()
    acc = GenesisAccount(address=codec.bytes_to_string(b"\x09" * 20))

    out = default_registry().apply_overrides(app, app.default_genesis(), {"auth": AuthGenesis(accounts=[acc])})

    auth = app.codec.unmarshal_json(out["auth"], AuthGenesis)
    assert [a.address for a in auth.accounts] == [acc.address]


def test_consensus_override_is_a_noop_for_any_value() -> None:
    app = _mk_app()
    genesis = app.default_genesis()
    reg = default_registry()

    assert reg.apply_overrides(app, genesis, {"consensus": ConsensusParams(block_max_gas=100)}) == genesis
    assert reg.apply_overrides(app, genesis, {"consensus": "anything"}) == genesis
    assert "consensus" not in genesis


def test_consensus_override_extraction() -> None:
    params = ConsensusParams(block_max_gas=100)
    assert consensus_override({"consensus": params}) is params
    assert consensus_override({"consensus": "x"}) is None
    assert consensus_override(None) is None


def test_custom_genesis_keys_by_module() -> None:
    out = custom_genesis(GovGenesis(), BankGenesis(), MintGenesis())
    assert sorted(out) == ["bank", "gov", "mint"]


def test_last_registration_wins() -> None:
    app = _mk_app()
    reg = GenesisRegistry()
    reg.register("gov", ReplaceModuleGenesis(MintGenesis))
    reg.register("gov", ReplaceModuleGenesis(GovGenesis))

    out = reg.apply_overrides(app, app.default_genesis(), {"gov": GovGenesis(starting_proposal_id=3)})
    assert app.codec.unmarshal_json(out["gov"], GovGenesis).starting_proposal_id == 3
