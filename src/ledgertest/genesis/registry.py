# src/ledgertest/genesis/registry.py
from __future__ import annotations

"""Per-module genesis override setters.

Each module gets one setter object implementing `apply(app, genesis, override)`.
Setters never mutate the genesis mapping they receive; a rejected override
leaves the caller's mapping exactly as it was.

Two failure classes:
  - unknown module name: harness misconfiguration, aborts (FatalSetupError)
  - override of the wrong type: InvalidGenesisOverrideType, recoverable
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Type

from ledgertest.ledger.coins import Coin, add_coins
from ledgertest.ledger.types import (
    AuthGenesis,
    BankGenesis,
    CapabilityGenesis,
    ConsensusParams,
    DistributionGenesis,
    Erc20Genesis,
    EvmGenesis,
    FeeMarketGenesis,
    GovGenesis,
    MintGenesis,
    ModuleGenesis,
)
from ledgertest.runtime.app import GenesisState, LedgerApp
from ledgertest.runtime.errors import InvalidGenesisOverrideType, abort_setup
from ledgertest.structured_logging import log_event

log = logging.getLogger("ledgertest.genesis")


class ModuleGenesisSetter:
    """Merges one module's typed override into the aggregate genesis."""

    module: str = ""
    override_type: Optional[Type[Any]] = None

    def apply(self, app: LedgerApp, genesis: GenesisState, override: Any) -> GenesisState:
        if self.override_type is not None and not isinstance(override, self.override_type):
            raise InvalidGenesisOverrideType(self.module, override)
        return self._merge(app, dict(genesis), override)

    def _merge(self, app: LedgerApp, genesis: GenesisState, override: Any) -> GenesisState:
        raise NotImplementedError


class ReplaceModuleGenesis(ModuleGenesisSetter):
    """The override replaces the module's genesis entirely."""

    def __init__(self, override_type: Type[ModuleGenesis]) -> None:
        self.module = override_type.module
        self.override_type = override_type

    def _merge(self, app: LedgerApp, genesis: GenesisState, override: Any) -> GenesisState:
        genesis[self.module] = app.codec.marshal_json(override)
        return genesis


class BankGenesisSetter(ModuleGenesisSetter):
    """Appends balances (growing supply with them), metadata and send-enabled."""

    module = BankGenesis.module
    override_type = BankGenesis

    def _merge(self, app: LedgerApp, genesis: GenesisState, override: BankGenesis) -> GenesisState:
        bank_gen = app.codec.unmarshal_json(genesis[self.module], BankGenesis)

        if override.balances:
            coins: List[Coin] = []
            for b in override.balances:
                coins = add_coins(coins, b.coins)
            bank_gen.balances.extend(b.model_copy(deep=True) for b in override.balances)
            bank_gen.supply = add_coins(bank_gen.supply, coins)
        if override.denom_metadata:
            bank_gen.denom_metadata.extend(m.model_copy(deep=True) for m in override.denom_metadata)
        if override.send_enabled:
            bank_gen.send_enabled.extend(s.model_copy(deep=True) for s in override.send_enabled)

        bank_gen.params = override.params.model_copy(deep=True)

        genesis[self.module] = app.codec.marshal_json(bank_gen)
        return genesis


class AuthGenesisSetter(ModuleGenesisSetter):
    module = AuthGenesis.module
    override_type = AuthGenesis

    def _merge(self, app: LedgerApp, genesis: GenesisState, override: AuthGenesis) -> GenesisState:
        auth_gen = app.codec.unmarshal_json(genesis[self.module], AuthGenesis)
        if override.accounts:
            auth_gen.accounts.extend(a.model_copy(deep=True) for a in override.accounts)
        auth_gen.params = override.params.model_copy(deep=True)
        genesis[self.module] = app.codec.marshal_json(auth_gen)
        return genesis


class ConsensusGenesisSetter(ModuleGenesisSetter):
    """No-op: consensus params are not part of the app genesis.

    They are handed to the app at chain initialization instead (block max gas,
    max bytes, ...), so any value is accepted here.
    """

    module = ConsensusParams.module
    override_type = None

    def _merge(self, app: LedgerApp, genesis: GenesisState, override: Any) -> GenesisState:
        return genesis


class GenesisRegistry:
    def __init__(self) -> None:
        self._setters: Dict[str, ModuleGenesisSetter] = {}

    def register(self, module: str, setter: ModuleGenesisSetter) -> None:
        # Last registration wins.
        self._setters[str(module)] = setter

    def __contains__(self, module: object) -> bool:
        return module in self._setters

    def modules(self) -> List[str]:
        return sorted(self._setters)

    def get(self, module: str) -> ModuleGenesisSetter:
        setter = self._setters.get(module)
        if setter is None:
            abort_setup(log, f"module {module} not found in genesis setup functions", module=module)
        return setter

    def apply_overrides(
        self,
        app: LedgerApp,
        genesis: GenesisState,
        overrides: Optional[Mapping[str, Any]],
    ) -> GenesisState:
        """Apply every override in mapping order; the input mapping is never mutated."""
        out = dict(genesis)
        for module, override in (overrides or {}).items():
            setter = self.get(module)
            try:
                out = setter.apply(app, out, override)
            except InvalidGenesisOverrideType as e:
                log_event(log, "genesis_override_rejected", module=module, received_type=e.received_type)
                raise
            log_event(log, "genesis_override_applied", module=module)
        return out


def default_registry() -> GenesisRegistry:
    reg = GenesisRegistry()
    for t in (EvmGenesis, Erc20Genesis, GovGenesis, FeeMarketGenesis, DistributionGenesis, MintGenesis, CapabilityGenesis):
        reg.register(t.module, ReplaceModuleGenesis(t))
    reg.register(BankGenesis.module, BankGenesisSetter())
    reg.register(AuthGenesis.module, AuthGenesisSetter())
    reg.register(ConsensusParams.module, ConsensusGenesisSetter())
    return reg


def custom_genesis(*overrides: ModuleGenesis) -> Dict[str, ModuleGenesis]:
    """Override mapping keyed by each model's own module name."""
    out: Dict[str, ModuleGenesis] = {}
    for o in overrides:
        out[type(o).module] = o
    return out


def consensus_override(overrides: Optional[Mapping[str, Any]]) -> Optional[ConsensusParams]:
    v = (overrides or {}).get(ConsensusParams.module)
    return v if isinstance(v, ConsensusParams) else None