from __future__ import annotations

"""Typed module genesis states.

Every model carries its module name as the `module` class attribute. That name
is the key under which the model's JSON lives in the aggregate genesis map and
the discriminant used by override dispatch.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledgertest.crypto.keys import PubKey
from ledgertest.ledger.coins import Balance, Coin
from ledgertest.ledger.constants import DEFAULT_BASE_FEE

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _StrictModel(BaseModel):
    """Strict model: reject unknown keys."""

    model_config = ConfigDict(extra="forbid")


class ModuleGenesis(_StrictModel):
    module: ClassVar[str] = ""


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


class AuthParams(_StrictModel):
    max_memo_characters: int = 256
    tx_sig_limit: int = 7
    tx_size_cost_per_byte: int = 10
    sig_verify_cost_ed25519: int = 590
    sig_verify_cost_secp256k1: int = 1000


class GenesisAccount(_StrictModel):
    address: str
    pub_key: Optional[PubKey] = None
    account_number: int = 0
    sequence: int = 0


class AuthGenesis(ModuleGenesis):
    module: ClassVar[str] = "auth"

    params: AuthParams = Field(default_factory=AuthParams)
    accounts: List[GenesisAccount] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# bank
# ---------------------------------------------------------------------------


class BankParams(_StrictModel):
    default_send_enabled: bool = True


class DenomUnit(_StrictModel):
    denom: str
    exponent: int
    aliases: List[str] = Field(default_factory=list)


class Metadata(_StrictModel):
    description: str = ""
    denom_units: List[DenomUnit] = Field(default_factory=list)
    base: str
    display: str
    name: str = ""
    symbol: str = ""


class SendEnabled(_StrictModel):
    denom: str
    enabled: bool = True


class BankGenesis(ModuleGenesis):
    module: ClassVar[str] = "bank"

    params: BankParams = Field(default_factory=BankParams)
    balances: List[Balance] = Field(default_factory=list)
    supply: List[Coin] = Field(default_factory=list)
    denom_metadata: List[Metadata] = Field(default_factory=list)
    send_enabled: List[SendEnabled] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# staking
# ---------------------------------------------------------------------------


class BondStatus(str, Enum):
    UNSPECIFIED = "BOND_STATUS_UNSPECIFIED"
    UNBONDED = "BOND_STATUS_UNBONDED"
    UNBONDING = "BOND_STATUS_UNBONDING"
    BONDED = "BOND_STATUS_BONDED"


class Commission(_StrictModel):
    rate: Decimal
    max_rate: Decimal
    max_change_rate: Decimal
    update_time: datetime = UNIX_EPOCH

    @model_validator(mode="after")
    def _check_rates(self) -> "Commission":
        for name in ("rate", "max_rate", "max_change_rate"):
            v = getattr(self, name)
            if v < 0 or v > 1:
                raise ValueError(f"commission {name} must be within [0, 1]; got {v}")
        if self.rate > self.max_rate:
            raise ValueError("commission rate cannot exceed max rate")
        if self.max_change_rate > self.max_rate:
            raise ValueError("commission max change rate cannot exceed max rate")
        return self


class Description(_StrictModel):
    moniker: str = ""
    identity: str = ""
    website: str = ""
    security_contact: str = ""
    details: str = ""


class StakingValidator(_StrictModel):
    operator_address: str
    consensus_pubkey: PubKey
    jailed: bool = False
    status: BondStatus = BondStatus.BONDED
    tokens: int = Field(ge=0)
    delegator_shares: Decimal
    description: Description = Field(default_factory=Description)
    unbonding_height: int = 0
    unbonding_time: datetime = UNIX_EPOCH
    commission: Commission
    min_self_delegation: int = 0

    def cons_address(self) -> bytes:
        return self.consensus_pubkey.address()


class Delegation(_StrictModel):
    delegator_address: str
    validator_address: str
    shares: Decimal


class StakingParams(_StrictModel):
    unbonding_time_s: int = 21 * 24 * 60 * 60
    max_validators: int = 100
    max_entries: int = 7
    historical_entries: int = 10_000
    bond_denom: str = "stake"
    min_commission_rate: Decimal = Decimal("0")


class StakingGenesis(ModuleGenesis):
    module: ClassVar[str] = "staking"

    params: StakingParams = Field(default_factory=StakingParams)
    last_total_power: int = 0
    validators: List[StakingValidator] = Field(default_factory=list)
    delegations: List[Delegation] = Field(default_factory=list)
    exported: bool = False


# ---------------------------------------------------------------------------
# slashing
# ---------------------------------------------------------------------------


class SlashingParams(_StrictModel):
    signed_blocks_window: int = 100
    min_signed_per_window: Decimal = Decimal("0.5")
    downtime_jail_duration_s: int = 600
    slash_fraction_double_sign: Decimal = Decimal("0.05")
    slash_fraction_downtime: Decimal = Decimal("0.01")


class ValidatorSigningInfo(_StrictModel):
    address: str
    start_height: int = 0
    index_offset: int = 0
    jailed_until: datetime = UNIX_EPOCH
    tombstoned: bool = False
    missed_blocks_counter: int = 0


class SigningInfo(_StrictModel):
    address: str
    validator_signing_info: ValidatorSigningInfo


class MissedBlock(_StrictModel):
    index: int
    missed: bool


class ValidatorMissedBlocks(_StrictModel):
    address: str
    missed_blocks: List[MissedBlock] = Field(default_factory=list)


class SlashingGenesis(ModuleGenesis):
    module: ClassVar[str] = "slashing"

    params: SlashingParams = Field(default_factory=SlashingParams)
    signing_infos: List[SigningInfo] = Field(default_factory=list)
    missed_blocks: List[ValidatorMissedBlocks] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# gov
# ---------------------------------------------------------------------------


class GovParams(_StrictModel):
    min_deposit: List[Coin] = Field(default_factory=lambda: [Coin(denom="stake", amount=10_000_000)])
    expedited_min_deposit: List[Coin] = Field(default_factory=lambda: [Coin(denom="stake", amount=50_000_000)])
    max_deposit_period_s: int = 172_800
    voting_period_s: int = 172_800
    expedited_voting_period_s: int = 86_400
    quorum: Decimal = Decimal("0.334")
    threshold: Decimal = Decimal("0.5")
    veto_threshold: Decimal = Decimal("0.334")
    min_initial_deposit_ratio: Decimal = Decimal("0")


class GovGenesis(ModuleGenesis):
    module: ClassVar[str] = "gov"

    starting_proposal_id: int = 1
    params: GovParams = Field(default_factory=GovParams)


# ---------------------------------------------------------------------------
# mint
# ---------------------------------------------------------------------------


class MintParams(_StrictModel):
    mint_denom: str = "stake"
    inflation_rate_change: Decimal = Decimal("0.13")
    inflation_max: Decimal = Decimal("0.20")
    inflation_min: Decimal = Decimal("0.07")
    goal_bonded: Decimal = Decimal("0.67")
    blocks_per_year: int = 6_311_520


class Minter(_StrictModel):
    inflation: Decimal = Decimal("0.13")
    annual_provisions: Decimal = Decimal("0")


class MintGenesis(ModuleGenesis):
    module: ClassVar[str] = "mint"

    minter: Minter = Field(default_factory=Minter)
    params: MintParams = Field(default_factory=MintParams)


# ---------------------------------------------------------------------------
# feemarket
# ---------------------------------------------------------------------------


class FeeMarketParams(_StrictModel):
    no_base_fee: bool = False
    base_fee_change_denominator: int = 8
    elasticity_multiplier: int = 2
    enable_height: int = 0
    base_fee: Decimal = Decimal(DEFAULT_BASE_FEE)
    min_gas_price: Decimal = Decimal("0")
    min_gas_multiplier: Decimal = Decimal("0.5")


class FeeMarketGenesis(ModuleGenesis):
    module: ClassVar[str] = "feemarket"

    params: FeeMarketParams = Field(default_factory=FeeMarketParams)
    block_gas: int = 0


# ---------------------------------------------------------------------------
# erc20 / evm
# ---------------------------------------------------------------------------


class TokenPair(_StrictModel):
    erc20_address: str
    denom: str
    enabled: bool = True
    contract_owner: str = "OWNER_MODULE"


class Erc20Params(_StrictModel):
    enable_erc20: bool = True
    native_precompiles: List[str] = Field(default_factory=list)
    dynamic_precompiles: List[str] = Field(default_factory=list)


class Erc20Genesis(ModuleGenesis):
    module: ClassVar[str] = "erc20"

    params: Erc20Params = Field(default_factory=Erc20Params)
    token_pairs: List[TokenPair] = Field(default_factory=list)


class EvmParams(_StrictModel):
    evm_denom: str = "aatom"
    extra_eips: List[int] = Field(default_factory=list)
    allow_unprotected_txs: bool = False
    active_static_precompiles: List[str] = Field(default_factory=list)


class EvmAccount(_StrictModel):
    address: str
    code: str = ""
    storage: Dict[str, str] = Field(default_factory=dict)


class EvmGenesis(ModuleGenesis):
    module: ClassVar[str] = "evm"

    params: EvmParams = Field(default_factory=EvmParams)
    accounts: List[EvmAccount] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# distribution / capability
# ---------------------------------------------------------------------------


class DistributionParams(_StrictModel):
    community_tax: Decimal = Decimal("0.02")
    withdraw_addr_enabled: bool = True


class DistributionGenesis(ModuleGenesis):
    module: ClassVar[str] = "distribution"

    params: DistributionParams = Field(default_factory=DistributionParams)
    fee_pool: List[Coin] = Field(default_factory=list)


class CapabilityOwner(_StrictModel):
    index: int
    owners: List[str] = Field(default_factory=list)


class CapabilityGenesis(ModuleGenesis):
    module: ClassVar[str] = "capability"

    index: int = 1
    owners: List[CapabilityOwner] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# consensus (not part of the app genesis map)
# ---------------------------------------------------------------------------


class ConsensusParams(ModuleGenesis):
    module: ClassVar[str] = "consensus"

    block_max_bytes: int = 22_020_096
    block_max_gas: int = -1
    evidence_max_age_num_blocks: int = 100_000
    evidence_max_age_s: int = 172_800
    validator_pub_key_types: List[str] = Field(default_factory=lambda: ["ed25519"])


APP_MODULE_GENESIS: tuple[Type[ModuleGenesis], ...] = (
    AuthGenesis,
    BankGenesis,
    StakingGenesis,
    SlashingGenesis,
    GovGenesis,
    MintGenesis,
    FeeMarketGenesis,
    Erc20Genesis,
    EvmGenesis,
    DistributionGenesis,
    CapabilityGenesis,
)

MODULE_GENESIS_TYPES: Dict[str, Type[ModuleGenesis]] = {t.module: t for t in APP_MODULE_GENESIS}
