# src/ledgertest/network/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

import yaml

from ledgertest.ledger.address import APP_PREFIXES, AddressPrefixes
from ledgertest.ledger.coins import Balance, Coin
from ledgertest.ledger.constants import DEFAULT_BASE_FEE, EXAMPLE_ATTO_DENOM, EXAMPLE_CHAIN_ID, GENESIS_TIME
from ledgertest.ledger.decimals import Decimals, validate_decimals
from ledgertest.testing.keyring import Keyring

Json = Dict[str, Any]

DEFAULT_AMOUNT_OF_VALIDATORS = 3
DEFAULT_PRE_FUNDED_ACCOUNTS = 3


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_decimal(v: Any, default: Decimal) -> Decimal:
    if v is None:
        return default
    try:
        return Decimal(str(v))
    except InvalidOperation:
        return default


def _as_hex_addrs(v: Any, default: Tuple[bytes, ...]) -> Tuple[bytes, ...]:
    if not isinstance(v, list):
        return default
    return tuple(bytes.fromhex(str(x).removeprefix("0x")) for x in v)


@dataclass(frozen=True)
class NetworkConfig:
    chain_id: str
    amount_of_validators: int
    # Raw 20-byte account addresses funded with every denom.
    pre_funded_accounts: Tuple[bytes, ...]
    # When non-empty, used as-is instead of balances built from pre_funded_accounts.
    balances: Tuple[Balance, ...]
    denom: str
    decimals: int
    other_coin_denoms: Tuple[str, ...]
    operators_addresses: Tuple[bytes, ...]
    custom_genesis: Mapping[str, Any] = field(default_factory=dict)
    base_fee: Decimal = Decimal(DEFAULT_BASE_FEE)
    prefixes: AddressPrefixes = APP_PREFIXES
    genesis_time: datetime = GENESIS_TIME

    def denom_decimals(self) -> Dict[str, int]:
        """Precision of every funded denom; extra denoms are 18-decimal."""
        out: Dict[str, int] = {d: int(Decimals.EIGHTEEN) for d in self.other_coin_denoms}
        out[self.denom] = int(self.decimals)
        return out


Option = Callable[[NetworkConfig], NetworkConfig]


def validate_network_config(cfg: NetworkConfig) -> None:
    """Fail-fast validation, run once before a network is built."""

    if not isinstance(cfg.chain_id, str) or not cfg.chain_id.strip():
        raise ValueError("chain_id must be a non-empty string")

    if int(cfg.amount_of_validators) < 1:
        raise ValueError(f"amount_of_validators must be >= 1; got: {cfg.amount_of_validators}")

    # Decimals are validated here so conversion_factor never sees a bad value.
    validate_decimals(cfg.decimals)

    # Coin validates the denom format.
    Coin(denom=cfg.denom, amount=0)
    for d in cfg.other_coin_denoms:
        Coin(denom=d, amount=0)
    if cfg.denom in cfg.other_coin_denoms:
        raise ValueError(f"other_coin_denoms must not repeat the native denom {cfg.denom!r}")
    if len(set(cfg.other_coin_denoms)) != len(cfg.other_coin_denoms):
        raise ValueError("other_coin_denoms must not contain duplicates")

    if not cfg.pre_funded_accounts and not cfg.balances:
        raise ValueError("at least one pre-funded account or explicit balance is required")
    for acc in cfg.pre_funded_accounts:
        if not isinstance(acc, (bytes, bytearray)) or len(acc) != 20:
            raise ValueError(f"pre-funded account must be 20 raw bytes; got: {acc!r}")

    if cfg.base_fee < 0:
        raise ValueError(f"base_fee must be >= 0; got: {cfg.base_fee}")

    if cfg.genesis_time.tzinfo is None:
        raise ValueError("genesis_time must be timezone-aware")


def default_network_config() -> NetworkConfig:
    keyring = Keyring(DEFAULT_PRE_FUNDED_ACCOUNTS)
    return NetworkConfig(
        chain_id=EXAMPLE_CHAIN_ID,
        amount_of_validators=DEFAULT_AMOUNT_OF_VALIDATORS,
        pre_funded_accounts=tuple(keyring.get_all_acc_addrs()),
        balances=(),
        denom=EXAMPLE_ATTO_DENOM,
        decimals=int(Decimals.EIGHTEEN),
        other_coin_denoms=(),
        operators_addresses=(),
    )


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


def with_chain_id(chain_id: str) -> Option:
    return lambda cfg: replace(cfg, chain_id=str(chain_id))


def with_amount_of_validators(n: int) -> Option:
    return lambda cfg: replace(cfg, amount_of_validators=int(n))


def with_pre_funded_accounts(*accounts: bytes) -> Option:
    return lambda cfg: replace(cfg, pre_funded_accounts=tuple(accounts))


def with_balances(*balances: Balance) -> Option:
    return lambda cfg: replace(cfg, balances=tuple(balances))


def with_denom(denom: str) -> Option:
    return lambda cfg: replace(cfg, denom=str(denom))


def with_decimals(decimals: int) -> Option:
    return lambda cfg: replace(cfg, decimals=decimals)


def with_other_denoms(denoms: Sequence[str]) -> Option:
    return lambda cfg: replace(cfg, other_coin_denoms=tuple(denoms))


def with_validator_operators(operators: Sequence[bytes]) -> Option:
    return lambda cfg: replace(cfg, operators_addresses=tuple(operators))


def with_custom_genesis(custom_genesis: Mapping[str, Any]) -> Option:
    return lambda cfg: replace(cfg, custom_genesis=dict(custom_genesis))


def with_base_fee(base_fee: Decimal) -> Option:
    return lambda cfg: replace(cfg, base_fee=Decimal(base_fee))


def with_prefixes(prefixes: AddressPrefixes) -> Option:
    return lambda cfg: replace(cfg, prefixes=prefixes)


def with_genesis_time(genesis_time: datetime) -> Option:
    return lambda cfg: replace(cfg, genesis_time=genesis_time)


def apply_options(cfg: NetworkConfig, *opts: Option) -> NetworkConfig:
    for opt in opts:
        cfg = opt(cfg)
    return cfg


# ---------------------------------------------------------------------------
# Files / environment
# ---------------------------------------------------------------------------


def read_network_config_file(path: str) -> NetworkConfig:
    """Load a YAML (or JSON) network config on top of the defaults.

    Addresses are hex strings. Custom genesis overrides are typed models and
    can only be set in code (`with_custom_genesis`).
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("network config must be a mapping")

    d = default_network_config()

    balances = d.balances
    if isinstance(raw.get("balances"), list):
        balances = tuple(Balance.model_validate(b) for b in raw["balances"])

    other = raw.get("other_coin_denoms")
    prefix = raw.get("bech32_prefix")

    cfg = NetworkConfig(
        chain_id=_as_str(raw.get("chain_id"), d.chain_id),
        amount_of_validators=_as_int(raw.get("amount_of_validators"), d.amount_of_validators),
        pre_funded_accounts=_as_hex_addrs(raw.get("pre_funded_accounts"), d.pre_funded_accounts),
        balances=balances,
        denom=_as_str(raw.get("denom"), d.denom),
        decimals=_as_int(raw.get("decimals"), d.decimals),
        other_coin_denoms=tuple(str(x) for x in other) if isinstance(other, list) else d.other_coin_denoms,
        operators_addresses=_as_hex_addrs(raw.get("operators_addresses"), d.operators_addresses),
        base_fee=_as_decimal(raw.get("base_fee"), d.base_fee),
        prefixes=AddressPrefixes.from_main(prefix) if prefix else d.prefixes,
        genesis_time=raw["genesis_time"] if isinstance(raw.get("genesis_time"), datetime) else d.genesis_time,
    )

    validate_network_config(cfg)
    return cfg


def load_network_config(*, config_path: Optional[str] = None) -> NetworkConfig:
    p = config_path or os.environ.get("LEDGERTEST_NETWORK_CONFIG_PATH")
    if p:
        return read_network_config_file(p)

    cfg = default_network_config()
    validate_network_config(cfg)
    return cfg
