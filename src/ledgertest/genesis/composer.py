# src/ledgertest/genesis/composer.py
from __future__ import annotations

"""Genesis composition.

`compose_genesis` derives the staking, slashing and bank state from a
validator set and funded balances, writes every module default in a fixed
order, then applies caller overrides through the genesis registry.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence

from ledgertest.genesis.builders import (
    calculate_total_supply,
    create_delegations,
    create_staking_validators,
    get_validators_slashing_genesis,
    reconcile_bonded_pool,
)
from ledgertest.genesis.params import (
    BankCustomGenesisState,
    DefaultGenesisParams,
    FeeMarketCustomGenesisState,
    GovCustomGenesisState,
    MintCustomGenesisState,
    SlashingCustomGenesisState,
    StakingCustomGenesisState,
)
from ledgertest.genesis.registry import GenesisRegistry, default_registry
from ledgertest.ledger.coins import Balance, Coin
from ledgertest.ledger.constants import DEFAULT_BASE_FEE, NATIVE_TOKEN_CONTRACT
from ledgertest.ledger.decimals import conversion_factor
from ledgertest.ledger.types import (
    AuthGenesis,
    AuthParams,
    BankGenesis,
    BankParams,
    DenomUnit,
    Erc20Genesis,
    FeeMarketGenesis,
    GenesisAccount,
    GovGenesis,
    Metadata,
    MintGenesis,
    SlashingGenesis,
    StakingGenesis,
    StakingParams,
    TokenPair,
)
from ledgertest.runtime.app import GenesisState, LedgerApp
from ledgertest.runtime.block import ValidatorSet
from ledgertest.structured_logging import log_event

log = logging.getLogger("ledgertest.genesis")


def set_default_auth_genesis_state(app: LedgerApp, genesis: GenesisState, gen_accounts: List[GenesisAccount]) -> GenesisState:
    auth_gen = AuthGenesis(params=AuthParams(), accounts=list(gen_accounts))
    genesis[AuthGenesis.module] = app.codec.marshal_json(auth_gen)
    return genesis


def set_default_staking_genesis_state(
    app: LedgerApp, genesis: GenesisState, overwrite: StakingCustomGenesisState
) -> GenesisState:
    staking_gen = StakingGenesis(
        params=StakingParams(bond_denom=overwrite.denom),
        validators=list(overwrite.validators),
        delegations=list(overwrite.delegations),
    )
    genesis[StakingGenesis.module] = app.codec.marshal_json(staking_gen)
    return genesis


def _native_denom_metadata(app: LedgerApp) -> Metadata:
    info = app.coin_info
    return Metadata(
        description=f"The native staking and fee token of {app.chain_id()}",
        denom_units=[
            DenomUnit(denom=info.denom, exponent=0),
            DenomUnit(denom=info.display_denom, exponent=int(info.decimals)),
        ],
        base=info.denom,
        display=info.display_denom,
        name=info.display_denom.upper(),
        symbol=info.display_denom.upper(),
    )


def set_default_bank_genesis_state(app: LedgerApp, genesis: GenesisState, overwrite: BankCustomGenesisState) -> GenesisState:
    bank_gen = BankGenesis(
        params=BankParams(),
        balances=list(overwrite.balances),
        supply=list(overwrite.total_supply),
        denom_metadata=[_native_denom_metadata(app)],
        send_enabled=[],
    )
    genesis[BankGenesis.module] = app.codec.marshal_json(bank_gen)
    return genesis


def set_default_gov_genesis_state(app: LedgerApp, genesis: GenesisState, overwrite: GovCustomGenesisState) -> GenesisState:
    """Min deposits are 1 full token of the denom, whatever its precision."""
    gov_gen = GovGenesis()
    min_deposit_amt = 10**18 // conversion_factor(app.coin_info.decimals)
    gov_gen.params.min_deposit = [Coin(denom=overwrite.denom, amount=min_deposit_amt)]
    gov_gen.params.expedited_min_deposit = [Coin(denom=overwrite.denom, amount=min_deposit_amt)]
    genesis[GovGenesis.module] = app.codec.marshal_json(gov_gen)
    return genesis


def set_default_fee_market_genesis_state(
    app: LedgerApp, genesis: GenesisState, overwrite: FeeMarketCustomGenesisState
) -> GenesisState:
    fm_gen = FeeMarketGenesis()
    fm_gen.params.base_fee = overwrite.base_fee
    genesis[FeeMarketGenesis.module] = app.codec.marshal_json(fm_gen)
    return genesis


def set_default_slashing_genesis_state(
    app: LedgerApp, genesis: GenesisState, overwrite: SlashingCustomGenesisState
) -> GenesisState:
    slashing_gen = SlashingGenesis(
        signing_infos=list(overwrite.signing_info),
        missed_blocks=list(overwrite.missed_blocks),
    )
    genesis[SlashingGenesis.module] = app.codec.marshal_json(slashing_gen)
    return genesis


def set_default_mint_genesis_state(app: LedgerApp, genesis: GenesisState, overwrite: MintCustomGenesisState) -> GenesisState:
    """Test networks do not mint by default (inflation pinned by overwrite)."""
    mint_gen = MintGenesis()
    mint_gen.params.mint_denom = overwrite.denom
    mint_gen.params.inflation_min = overwrite.inflation_min
    mint_gen.params.inflation_max = overwrite.inflation_max
    mint_gen.minter.inflation = overwrite.inflation_min
    genesis[MintGenesis.module] = app.codec.marshal_json(mint_gen)
    return genesis


def set_default_erc20_genesis_state(app: LedgerApp, genesis: GenesisState) -> GenesisState:
    erc20_gen = Erc20Genesis()
    erc20_gen.token_pairs = [TokenPair(erc20_address=NATIVE_TOKEN_CONTRACT, denom=app.coin_info.denom)]
    erc20_gen.params.native_precompiles = [NATIVE_TOKEN_CONTRACT]
    genesis[Erc20Genesis.module] = app.codec.marshal_json(erc20_gen)
    return genesis


def new_default_genesis_state(app: LedgerApp, params: DefaultGenesisParams) -> GenesisState:
    """App defaults overwritten, in order, by the harness defaults.

    Order is fixed: gov reads the fee denom's conversion factor, which must
    already match the denom staking and bank were built with.
    """
    genesis = app.default_genesis()

    genesis = set_default_auth_genesis_state(app, genesis, params.gen_accounts)
    genesis = set_default_staking_genesis_state(app, genesis, params.staking)
    genesis = set_default_bank_genesis_state(app, genesis, params.bank)
    genesis = set_default_gov_genesis_state(app, genesis, params.gov)
    genesis = set_default_fee_market_genesis_state(app, genesis, params.feemarket)
    genesis = set_default_slashing_genesis_state(app, genesis, params.slashing)
    genesis = set_default_mint_genesis_state(app, genesis, params.mint)
    genesis = set_default_erc20_genesis_state(app, genesis)

    return genesis


def customize_genesis(
    app: LedgerApp,
    custom_gen: Optional[Mapping[str, Any]],
    genesis: GenesisState,
    registry: Optional[GenesisRegistry] = None,
) -> GenesisState:
    reg = registry or default_registry()
    return reg.apply_overrides(app, genesis, custom_gen)


@dataclass
class GenesisInputs:
    validators: ValidatorSet
    gen_accounts: List[GenesisAccount]
    funded_balances: List[Balance]
    denom: str
    bonded_amount: int
    operator_addresses: Sequence[bytes] = ()
    # Defaults to the first genesis account.
    delegator: Optional[bytes] = None
    base_fee: Decimal = Decimal(DEFAULT_BASE_FEE)
    custom_genesis: Mapping[str, Any] = field(default_factory=dict)


def compose_genesis(app: LedgerApp, inputs: GenesisInputs, registry: Optional[GenesisRegistry] = None) -> GenesisState:
    acc_codec = app.account_codec()
    keeper = app.staking_keeper

    staking_validators = create_staking_validators(
        list(inputs.validators),
        inputs.bonded_amount,
        list(inputs.operator_addresses),
        keeper.validator_address_codec(),
    )

    delegator = inputs.delegator
    if delegator is None and inputs.gen_accounts:
        delegator = acc_codec.string_to_bytes(inputs.gen_accounts[0].address)
    delegations = create_delegations(staking_validators, delegator, acc_codec) if delegator is not None else []

    slashing = get_validators_slashing_genesis(staking_validators, keeper)

    total_bonded = int(inputs.bonded_amount) * len(staking_validators)
    balances = reconcile_bonded_pool(inputs.funded_balances, total_bonded, inputs.denom, acc_codec)
    total_supply = calculate_total_supply(balances)

    params = DefaultGenesisParams(
        gen_accounts=list(inputs.gen_accounts),
        staking=StakingCustomGenesisState(denom=inputs.denom, validators=staking_validators, delegations=delegations),
        slashing=slashing,
        bank=BankCustomGenesisState(total_supply=total_supply, balances=balances),
        gov=GovCustomGenesisState(denom=inputs.denom),
        mint=MintCustomGenesisState(denom=inputs.denom),
        feemarket=FeeMarketCustomGenesisState(base_fee=inputs.base_fee),
    )

    genesis = new_default_genesis_state(app, params)
    genesis = customize_genesis(app, inputs.custom_genesis, genesis, registry)

    log_event(
        log,
        "genesis_composed",
        chain_id=app.chain_id(),
        modules=len(genesis),
        validators=len(staking_validators),
        accounts=len(inputs.gen_accounts),
        overrides=sorted(inputs.custom_genesis or {}),
    )
    return genesis
