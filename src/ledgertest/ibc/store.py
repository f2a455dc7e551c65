# src/ledgertest/ibc/store.py
from __future__ import annotations

"""Per-chain IBC bookkeeping: light clients, connections and channels.

Each TestChain owns exactly one IbcStore. Counterparty state is never written
from the other side; an endpoint only reads it when checking a handshake step.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Tuple

from ledgertest.runtime.block import SignedHeader, ValidatorSet
from ledgertest.runtime.errors import HandshakeError

CLIENT_TYPE = "07-tendermint"


class Order(str, Enum):
    ORDERED = "ORDERED"
    UNORDERED = "UNORDERED"


class State(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    INIT = "INIT"
    TRYOPEN = "TRYOPEN"
    OPEN = "OPEN"


@dataclass(frozen=True)
class ConsensusState:
    time: datetime
    app_hash: str
    header_hash: str


@dataclass
class ClientState:
    """Light client of a counterparty chain, trusting one validator set."""

    chain_id: str
    trusted_validators: ValidatorSet
    latest_height: int = 0
    consensus_states: Dict[int, ConsensusState] = field(default_factory=dict)

    def update(self, signed: SignedHeader) -> bool:
        """Verify and store `signed`. False if it is not newer than the latest height."""
        h = signed.header
        if h.chain_id != self.chain_id:
            raise HandshakeError(
                "client_chain_id_mismatch",
                {"client": self.chain_id, "header": h.chain_id},
            )
        if signed.validator_set.hash() != self.trusted_validators.hash():
            raise HandshakeError("untrusted_validator_set", {"chain_id": h.chain_id, "height": h.height})
        if not signed.verify():
            raise HandshakeError("invalid_header_signatures", {"chain_id": h.chain_id, "height": h.height})
        if int(h.height) <= self.latest_height:
            return False
        self.consensus_states[int(h.height)] = ConsensusState(time=h.time, app_hash=h.app_hash, header_hash=h.hash())
        self.latest_height = int(h.height)
        return True


@dataclass
class ConnectionEnd:
    client_id: str
    state: State
    counterparty_client_id: str
    counterparty_connection_id: str = ""


@dataclass
class ChannelEnd:
    state: State
    order: Order
    version: str
    connection_id: str
    counterparty_port_id: str
    counterparty_channel_id: str = ""


@dataclass
class IbcStore:
    clients: Dict[str, ClientState] = field(default_factory=dict)
    connections: Dict[str, ConnectionEnd] = field(default_factory=dict)
    channels: Dict[Tuple[str, str], ChannelEnd] = field(default_factory=dict)
    _next_client: int = 0
    _next_connection: int = 0
    _next_channel: int = 0

    def add_client(self, client: ClientState) -> str:
        client_id = f"{CLIENT_TYPE}-{self._next_client}"
        self._next_client += 1
        self.clients[client_id] = client
        return client_id

    def add_connection(self, conn: ConnectionEnd) -> str:
        connection_id = f"connection-{self._next_connection}"
        self._next_connection += 1
        self.connections[connection_id] = conn
        return connection_id

    def add_channel(self, port_id: str, channel: ChannelEnd) -> str:
        channel_id = f"channel-{self._next_channel}"
        self._next_channel += 1
        self.channels[(port_id, channel_id)] = channel
        return channel_id

    def client(self, client_id: str) -> ClientState:
        c = self.clients.get(client_id)
        if c is None:
            raise HandshakeError("client_not_found", {"client_id": client_id})
        return c

    def connection(self, connection_id: str) -> ConnectionEnd:
        c = self.connections.get(connection_id)
        if c is None:
            raise HandshakeError("connection_not_found", {"connection_id": connection_id})
        return c

    def channel(self, port_id: str, channel_id: str) -> ChannelEnd:
        c = self.channels.get((port_id, channel_id))
        if c is None:
            raise HandshakeError("channel_not_found", {"port_id": port_id, "channel_id": channel_id})
        return c
