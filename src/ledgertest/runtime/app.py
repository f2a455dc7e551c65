# src/ledgertest/runtime/app.py
from __future__ import annotations

"""In-process ledger application.

A deliberately small stand-in for the modular ledger app: it owns the codec
for module genesis blobs, validates a genesis document at InitChain, and
advances height / app hash on every commit. Transaction execution is not
modelled.
"""

import json
import logging
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from ledgertest.ledger.address import (
    APP_PREFIXES,
    AddressCodec,
    AddressPrefixes,
    account_codec,
    consensus_codec,
    validator_codec,
)
from ledgertest.ledger.coins import Coin, add_coins, amount_of
from ledgertest.ledger.decimals import EvmCoinInfo
from ledgertest.ledger.types import (
    MODULE_GENESIS_TYPES,
    AuthGenesis,
    BankGenesis,
    BondStatus,
    ConsensusParams,
    ModuleGenesis,
    StakingGenesis,
)
from ledgertest.runtime.block import Header, ValidatorSet, _canon_json, sha256_hex
from ledgertest.runtime.errors import AppError
from ledgertest.structured_logging import log_event

log = logging.getLogger("ledgertest.app")

GenesisState = Dict[str, bytes]
M = TypeVar("M", bound=BaseModel)


class AppCodec:
    """JSON codec for module genesis models."""

    def __init__(self, types: Mapping[str, Type[ModuleGenesis]]) -> None:
        self._types = dict(types)

    def module_type(self, module: str) -> Type[ModuleGenesis]:
        t = self._types.get(module)
        if t is None:
            raise AppError("unknown_module", f"no genesis type for module {module}", {"module": module})
        return t

    def marshal_json(self, msg: BaseModel) -> bytes:
        return msg.model_dump_json().encode("utf-8")

    def unmarshal_json(self, bz: bytes, model_type: Type[M]) -> M:
        try:
            return model_type.model_validate_json(bz)
        except ValidationError as e:
            raise AppError(
                "invalid_module_genesis",
                f"cannot decode {model_type.__name__}",
                {"errors": e.errors(include_url=False, include_context=False)},
            ) from e

    def unmarshal_module(self, module: str, bz: bytes) -> ModuleGenesis:
        return self.unmarshal_json(bz, self.module_type(module))


class StakingKeeper:
    def __init__(self, prefixes: AddressPrefixes) -> None:
        self._prefixes = prefixes

    def consensus_address_codec(self) -> AddressCodec:
        return consensus_codec(self._prefixes)

    def validator_address_codec(self) -> AddressCodec:
        return validator_codec(self._prefixes)


class LedgerApp:
    def __init__(
        self,
        chain_id: str,
        *,
        prefixes: AddressPrefixes = APP_PREFIXES,
        coin_info: Optional[EvmCoinInfo] = None,
        module_types: Optional[Mapping[str, Type[ModuleGenesis]]] = None,
    ) -> None:
        self._chain_id = str(chain_id)
        self.prefixes = prefixes
        self.coin_info = coin_info or EvmCoinInfo()
        self.coin_info.validate()

        self._types = dict(module_types or MODULE_GENESIS_TYPES)
        self.codec = AppCodec(self._types)
        self.staking_keeper = StakingKeeper(prefixes)

        self._modules: Dict[str, ModuleGenesis] = {}
        self._initialized = False
        self.consensus_params: Optional[ConsensusParams] = None
        self.genesis_time: Optional[datetime] = None
        self.validators: Optional[ValidatorSet] = None
        self.last_block_height = 0
        self.app_hash = ""
        self._pending: Optional[Header] = None

    def chain_id(self) -> str:
        return self._chain_id

    def module_names(self) -> List[str]:
        return list(self._types)

    def account_codec(self) -> AddressCodec:
        return account_codec(self.prefixes)

    def default_genesis(self) -> GenesisState:
        return {name: self.codec.marshal_json(t()) for name, t in self._types.items()}

    # ------------------------------------------------------------------
    # InitChain
    # ------------------------------------------------------------------

    def init_chain(
        self,
        app_state_bytes: bytes,
        validators: ValidatorSet,
        *,
        genesis_time: datetime,
        consensus_params: Optional[ConsensusParams] = None,
    ) -> str:
        if self._initialized:
            raise AppError("already_initialized", "init_chain called twice", {"chain_id": self._chain_id})

        try:
            raw = json.loads(app_state_bytes)
        except ValueError as e:
            raise AppError("invalid_genesis", "app state is not JSON", {"error": str(e)}) from e
        if not isinstance(raw, dict):
            raise AppError("invalid_genesis", "app state must be a JSON object")

        modules: Dict[str, ModuleGenesis] = {}
        for name in self._types:
            if name not in raw:
                raise AppError("missing_module_genesis", f"missing genesis for module {name}", {"module": name})
            modules[name] = self.codec.unmarshal_module(name, json.dumps(raw[name]).encode("utf-8"))

        auth = modules.get(AuthGenesis.module)
        if isinstance(auth, AuthGenesis):
            _check_unique_accounts(auth)
        bank = modules.get(BankGenesis.module)
        if isinstance(bank, BankGenesis):
            check_supply_invariant(bank)
        staking = modules.get(StakingGenesis.module)
        if isinstance(staking, StakingGenesis):
            _check_validator_set(staking, validators)

        self._modules = modules
        self.validators = validators
        self.consensus_params = consensus_params or ConsensusParams()
        self.genesis_time = genesis_time
        self.app_hash = sha256_hex(app_state_bytes)
        self._initialized = True

        log_event(
            log,
            "chain_initialized",
            chain_id=self._chain_id,
            modules=len(modules),
            validators=len(validators),
            app_hash=self.app_hash,
        )
        return self.app_hash

    # ------------------------------------------------------------------
    # Block lifecycle
    # ------------------------------------------------------------------

    def finalize_block(self, header: Header) -> None:
        if not self._initialized:
            raise AppError("not_initialized", "finalize_block before init_chain", {"chain_id": self._chain_id})
        if header.chain_id != self._chain_id:
            raise AppError(
                "chain_id_mismatch",
                "header chain id does not match app",
                {"app": self._chain_id, "header": header.chain_id},
            )
        if int(header.height) != self.last_block_height + 1:
            raise AppError(
                "invalid_height",
                "header height must be last committed height + 1",
                {"expected": self.last_block_height + 1, "got": int(header.height)},
            )
        self._pending = header

    def commit(self) -> str:
        if self._pending is None:
            raise AppError("nothing_to_commit", "commit without finalize_block", {"chain_id": self._chain_id})
        header = self._pending
        self._pending = None
        self.app_hash = sha256_hex(
            _canon_json({"prev": self.app_hash, "header": header.hash()}).encode("utf-8")
        )
        self.last_block_height = int(header.height)
        log_event(
            log,
            "block_committed",
            level=logging.DEBUG,
            chain_id=self._chain_id,
            height=self.last_block_height,
            app_hash=self.app_hash,
        )
        return self.app_hash

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def module_genesis(self, module: str) -> ModuleGenesis:
        mod = self._modules.get(module)
        if mod is None:
            raise AppError("not_initialized", f"no state for module {module}", {"module": module})
        return mod

    def bank(self) -> BankGenesis:
        mod = self.module_genesis(BankGenesis.module)
        assert isinstance(mod, BankGenesis)
        return mod

    def balance(self, address: str, denom: str) -> int:
        for b in self.bank().balances:
            if b.address == address:
                return amount_of(b.coins, denom)
        return 0

    def total_supply(self) -> List[Coin]:
        return list(self.bank().supply)


def check_supply_invariant(bank: BankGenesis) -> None:
    """Supply must equal the sum of all balances (bonded pool included)."""
    total: List[Coin] = []
    for b in bank.balances:
        total = add_coins(total, b.coins)
    supply = add_coins([], bank.supply)
    if total != supply:
        raise AppError(
            "supply_mismatch",
            "bank supply does not equal the sum of balances",
            {
                "supply": [c.model_dump(mode="json") for c in supply],
                "balances_total": [c.model_dump(mode="json") for c in total],
            },
        )


def _check_unique_accounts(auth: AuthGenesis) -> None:
    seen: set[str] = set()
    for acc in auth.accounts:
        if acc.address in seen:
            raise AppError("duplicate_account", f"duplicate account found in genesis state: {acc.address}")
        seen.add(acc.address)


def _check_validator_set(staking: StakingGenesis, validators: ValidatorSet) -> None:
    bonded = sorted(v.consensus_pubkey.key for v in staking.validators if v.status == BondStatus.BONDED)
    expected = sorted(v.pub_key.key for v in validators)
    if bonded != expected:
        raise AppError(
            "validator_set_mismatch",
            "bonded staking validators do not match the consensus validator set",
            {"bonded": len(bonded), "expected": len(expected)},
        )


def serialize_app_state(genesis: Mapping[str, bytes]) -> bytes:
    """Join the per-module blobs into the single document handed to init_chain."""
    return _canon_json({name: json.loads(bz) for name, bz in genesis.items()}).encode("utf-8")
