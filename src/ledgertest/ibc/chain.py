# src/ledgertest/ibc/chain.py
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Dict, Optional, Sequence

from ledgertest.crypto.keys import AccountKey, PrivValidator
from ledgertest.genesis.builders import create_validator_set
from ledgertest.genesis.composer import GenesisInputs, compose_genesis
from ledgertest.ibc.store import IbcStore
from ledgertest.ledger.address import APP_PREFIXES, AddressCodec, AddressPrefixes, account_codec
from ledgertest.ledger.coins import Balance, Coin
from ledgertest.ledger.constants import (
    ATTO_POWER_REDUCTION,
    DEFAULT_POWER_REDUCTION,
    EXAMPLE_ATTO_DENOM,
    GENESIS_TIME,
    tokens_from_consensus_power,
)
from ledgertest.ledger.types import GenesisAccount
from ledgertest.runtime.app import LedgerApp, serialize_app_state
from ledgertest.runtime.block import Header, SignedHeader, ValidatorSet, next_header, sign_header
from ledgertest.runtime.errors import AppError

if TYPE_CHECKING:
    from ledgertest.ibc.coordinator import Coordinator


class TestChain:
    """One running ledger instance driven by a Coordinator.

    `current_header` is the next block to be committed; `last_header` is the
    signed header of the most recently committed one.
    """

    __test__ = False

    def __init__(
        self,
        *,
        coordinator: "Coordinator",
        chain_id: str,
        app: LedgerApp,
        current_header: Header,
        vals: ValidatorSet,
        signers: Dict[str, PrivValidator],
        sender_key: Optional[AccountKey] = None,
        sender_account: Optional[GenesisAccount] = None,
        last_header: Optional[SignedHeader] = None,
    ) -> None:
        self.coordinator = coordinator
        self.chain_id = str(chain_id)
        self.app = app
        self.current_header = current_header
        self.vals = vals
        self.signers = dict(signers)
        self.sender_key = sender_key
        self.sender_account = sender_account
        self.last_header = last_header
        self.ibc = IbcStore()

    def __repr__(self) -> str:
        return f"TestChain({self.chain_id!r}, height={self.current_header.height})"

    @property
    def prefixes(self) -> AddressPrefixes:
        return self.app.prefixes

    def account_codec(self) -> AddressCodec:
        return self.app.account_codec()

    def height(self) -> int:
        return int(self.current_header.height)

    def next_block(self) -> None:
        """Commit the current header and move to the next height.

        Time is left unchanged; the coordinator owns the clock.
        """
        header = self.current_header
        self.app.finalize_block(header)
        app_hash = self.app.commit()
        self.last_header = sign_header(header, self.vals, self.signers)
        self.current_header = next_header(header, app_hash=app_hash)

    def signed_header(self) -> SignedHeader:
        if self.last_header is None:
            raise AppError("no_committed_header", "chain has not committed a block yet", {"chain_id": self.chain_id})
        return self.last_header


def setup_with_genesis_val_set(
    val_set: ValidatorSet,
    gen_accounts: Sequence[GenesisAccount],
    chain_id: str,
    balances: Sequence[Balance],
    *,
    prefixes: AddressPrefixes = APP_PREFIXES,
    genesis_time: datetime = GENESIS_TIME,
) -> LedgerApp:
    """Initialize an app whose genesis bonds every validator in `val_set`.

    Each validator is bonded with one unit of consensus power, delegated from
    the first genesis account.
    """
    app = LedgerApp(chain_id, prefixes=prefixes)
    genesis = compose_genesis(
        app,
        GenesisInputs(
            validators=val_set,
            gen_accounts=list(gen_accounts),
            funded_balances=list(balances),
            denom=EXAMPLE_ATTO_DENOM,
            bonded_amount=tokens_from_consensus_power(1, DEFAULT_POWER_REDUCTION),
        ),
    )
    app.init_chain(serialize_app_state(genesis), val_set, genesis_time=genesis_time)
    return app


def new_test_chain(coord: "Coordinator", chain_id: str, *, prefixes: AddressPrefixes = APP_PREFIXES) -> TestChain:
    """Single-validator chain with one funded sender account.

    The first block is committed before returning so counterparty chains can
    create clients against it; the chain starts at height 2.
    """
    val_set, signers = create_validator_set(1)

    sender_key = AccountKey.generate()
    codec = account_codec(prefixes)
    sender_addr = codec.bytes_to_string(sender_key.address())
    sender_account = GenesisAccount(address=sender_addr, pub_key=sender_key.pub_key())

    amount = tokens_from_consensus_power(1, ATTO_POWER_REDUCTION)
    balance = Balance(address=sender_addr, coins=[Coin(denom=EXAMPLE_ATTO_DENOM, amount=amount)])

    app = setup_with_genesis_val_set(
        val_set,
        [sender_account],
        chain_id,
        [balance],
        prefixes=prefixes,
        genesis_time=coord.current_time,
    )

    header = Header(
        chain_id=chain_id,
        height=1,
        time=coord.current_time,
        app_hash=app.app_hash,
        validators_hash=val_set.hash(),
        next_validators_hash=val_set.hash(),
    )

    chain = TestChain(
        coordinator=coord,
        chain_id=chain_id,
        app=app,
        current_header=header,
        vals=val_set,
        signers=signers,
        sender_key=sender_key,
        sender_account=sender_account,
    )

    coord.commit_block(chain)
    return chain
