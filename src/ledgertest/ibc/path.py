# src/ledgertest/ibc/path.py
from __future__ import annotations

"""Paths between two coordinated chains and the in-process IBC handshake.

Handshake order (each line is one step on the named chain; the acting chain
commits a block after every step, and every step after client creation first
updates the actor's light client with the counterparty's latest header):

  clients:     A create_client, B create_client
  connection:  A INIT, B TRYOPEN, A OPEN (ack), B OPEN (confirm)
  channel:     A INIT, B TRYOPEN, A OPEN (ack), B OPEN (confirm)

Counterparty state is read directly from the counterparty's store, but only
once the actor's client has verified a signed header at or above the height
that state was committed in.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ledgertest.ibc.chain import TestChain
from ledgertest.ibc.store import ChannelEnd, ClientState, ConnectionEnd, Order, State
from ledgertest.runtime.errors import ChainNotFound, HandshakeError
from ledgertest.structured_logging import log_event

log = logging.getLogger("ledgertest.ibc")

TRANSFER_PORT = "transfer"
TRANSFER_VERSION = "ics20-1"
MOCK_PORT = "mock"
MOCK_VERSION = "mock-version"


@dataclass
class ChannelConfig:
    port_id: str = MOCK_PORT
    version: str = MOCK_VERSION
    order: Order = Order.UNORDERED


class Endpoint:
    def __init__(self, chain: TestChain, channel_config: Optional[ChannelConfig] = None) -> None:
        self.chain = chain
        self.counterparty: Optional[Endpoint] = None
        self.channel_config = channel_config or ChannelConfig()
        self.client_id = ""
        self.connection_id = ""
        self.channel_id = ""

    def __repr__(self) -> str:
        return f"Endpoint({self.chain.chain_id!r}, port={self.channel_config.port_id!r})"

    def _cp(self) -> "Endpoint":
        if self.counterparty is None:
            raise HandshakeError("endpoint_without_counterparty", {"chain_id": self.chain.chain_id})
        return self.counterparty

    def _commit(self, step: str) -> None:
        self.chain.coordinator.commit_block(self.chain)
        log_event(
            log,
            "handshake_step",
            level=logging.DEBUG,
            chain_id=self.chain.chain_id,
            counterparty=self._cp().chain.chain_id,
            step=step,
            height=self.chain.height(),
        )

    def _require_proven(self) -> None:
        """The actor's client must have seen the counterparty's latest commit."""
        cp_chain = self._cp().chain
        client = self.chain.ibc.client(self.client_id)
        if client.latest_height < cp_chain.app.last_block_height:
            raise HandshakeError(
                "stale_client",
                {
                    "client_id": self.client_id,
                    "client_height": client.latest_height,
                    "counterparty_height": cp_chain.app.last_block_height,
                },
            )

    @staticmethod
    def _require_state(what: str, got: State, want: State) -> None:
        if got != want:
            raise HandshakeError(f"invalid_{what}_state", {"expected": want.value, "got": got.value})

    # ------------------------------------------------------------------
    # Clients
    # ------------------------------------------------------------------

    def create_client(self) -> None:
        cp_chain = self._cp().chain
        client = ClientState(chain_id=cp_chain.chain_id, trusted_validators=cp_chain.vals)
        client.update(cp_chain.signed_header())
        self.client_id = self.chain.ibc.add_client(client)
        self._commit("create_client")

    def update_client(self) -> None:
        client = self.chain.ibc.client(self.client_id)
        if client.update(self._cp().chain.signed_header()):
            self._commit("update_client")

    # ------------------------------------------------------------------
    # Connection handshake
    # ------------------------------------------------------------------

    def conn_open_init(self) -> None:
        cp = self._cp()
        self.chain.ibc.client(self.client_id)
        conn = ConnectionEnd(client_id=self.client_id, state=State.INIT, counterparty_client_id=cp.client_id)
        self.connection_id = self.chain.ibc.add_connection(conn)
        self._commit("conn_open_init")

    def conn_open_try(self) -> None:
        cp = self._cp()
        self.update_client()
        self._require_proven()
        cp_conn = cp.chain.ibc.connection(cp.connection_id)
        self._require_state("counterparty_connection", cp_conn.state, State.INIT)
        if cp_conn.counterparty_client_id != self.client_id:
            raise HandshakeError(
                "counterparty_client_mismatch",
                {"expected": self.client_id, "got": cp_conn.counterparty_client_id},
            )
        conn = ConnectionEnd(
            client_id=self.client_id,
            state=State.TRYOPEN,
            counterparty_client_id=cp.client_id,
            counterparty_connection_id=cp.connection_id,
        )
        self.connection_id = self.chain.ibc.add_connection(conn)
        self._commit("conn_open_try")

    def conn_open_ack(self) -> None:
        cp = self._cp()
        self.update_client()
        self._require_proven()
        conn = self.chain.ibc.connection(self.connection_id)
        self._require_state("connection", conn.state, State.INIT)
        cp_conn = cp.chain.ibc.connection(cp.connection_id)
        self._require_state("counterparty_connection", cp_conn.state, State.TRYOPEN)
        if cp_conn.counterparty_connection_id != self.connection_id:
            raise HandshakeError(
                "counterparty_connection_mismatch",
                {"expected": self.connection_id, "got": cp_conn.counterparty_connection_id},
            )
        conn.state = State.OPEN
        conn.counterparty_connection_id = cp.connection_id
        self._commit("conn_open_ack")

    def conn_open_confirm(self) -> None:
        cp = self._cp()
        self.update_client()
        self._require_proven()
        conn = self.chain.ibc.connection(self.connection_id)
        self._require_state("connection", conn.state, State.TRYOPEN)
        self._require_state("counterparty_connection", cp.chain.ibc.connection(cp.connection_id).state, State.OPEN)
        conn.state = State.OPEN
        self._commit("conn_open_confirm")

    # ------------------------------------------------------------------
    # Channel handshake
    # ------------------------------------------------------------------

    def chan_open_init(self) -> None:
        cp = self._cp()
        self._require_state("connection", self.chain.ibc.connection(self.connection_id).state, State.OPEN)
        channel = ChannelEnd(
            state=State.INIT,
            order=self.channel_config.order,
            version=self.channel_config.version,
            connection_id=self.connection_id,
            counterparty_port_id=cp.channel_config.port_id,
        )
        self.channel_id = self.chain.ibc.add_channel(self.channel_config.port_id, channel)
        self._commit("chan_open_init")

    def chan_open_try(self) -> None:
        cp = self._cp()
        self.update_client()
        self._require_proven()
        self._require_state("connection", self.chain.ibc.connection(self.connection_id).state, State.OPEN)
        cp_chan = cp.chain.ibc.channel(cp.channel_config.port_id, cp.channel_id)
        self._require_state("counterparty_channel", cp_chan.state, State.INIT)
        if cp_chan.order != self.channel_config.order:
            raise HandshakeError(
                "channel_order_mismatch",
                {"expected": self.channel_config.order.value, "got": cp_chan.order.value},
            )
        if cp_chan.version != self.channel_config.version:
            raise HandshakeError(
                "channel_version_mismatch",
                {"expected": self.channel_config.version, "got": cp_chan.version},
            )
        if cp_chan.counterparty_port_id != self.channel_config.port_id:
            raise HandshakeError(
                "channel_port_mismatch",
                {"expected": self.channel_config.port_id, "got": cp_chan.counterparty_port_id},
            )
        channel = ChannelEnd(
            state=State.TRYOPEN,
            order=self.channel_config.order,
            version=self.channel_config.version,
            connection_id=self.connection_id,
            counterparty_port_id=cp.channel_config.port_id,
            counterparty_channel_id=cp.channel_id,
        )
        self.channel_id = self.chain.ibc.add_channel(self.channel_config.port_id, channel)
        self._commit("chan_open_try")

    def chan_open_ack(self) -> None:
        cp = self._cp()
        self.update_client()
        self._require_proven()
        channel = self.chain.ibc.channel(self.channel_config.port_id, self.channel_id)
        self._require_state("channel", channel.state, State.INIT)
        cp_chan = cp.chain.ibc.channel(cp.channel_config.port_id, cp.channel_id)
        self._require_state("counterparty_channel", cp_chan.state, State.TRYOPEN)
        if cp_chan.counterparty_channel_id != self.channel_id:
            raise HandshakeError(
                "counterparty_channel_mismatch",
                {"expected": self.channel_id, "got": cp_chan.counterparty_channel_id},
            )
        channel.state = State.OPEN
        channel.counterparty_channel_id = cp.channel_id
        self._commit("chan_open_ack")

    def chan_open_confirm(self) -> None:
        cp = self._cp()
        self.update_client()
        self._require_proven()
        channel = self.chain.ibc.channel(self.channel_config.port_id, self.channel_id)
        self._require_state("channel", channel.state, State.TRYOPEN)
        cp_chan = cp.chain.ibc.channel(cp.channel_config.port_id, cp.channel_id)
        self._require_state("counterparty_channel", cp_chan.state, State.OPEN)
        channel.state = State.OPEN
        self._commit("chan_open_confirm")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_channel(self) -> ChannelEnd:
        return self.chain.ibc.channel(self.channel_config.port_id, self.channel_id)

    def get_connection(self) -> ConnectionEnd:
        return self.chain.ibc.connection(self.connection_id)


class Path:
    """Two linked endpoints on chains owned by the same coordinator."""

    def __init__(self, endpoint_a: Endpoint, endpoint_b: Endpoint) -> None:
        self.endpoint_a = endpoint_a
        self.endpoint_b = endpoint_b
        endpoint_a.counterparty = endpoint_b
        endpoint_b.counterparty = endpoint_a

    def setup(self) -> None:
        self.setup_clients()
        self.setup_connections()
        self.create_channels()

    def setup_clients(self) -> None:
        self.endpoint_a.create_client()
        self.endpoint_b.create_client()

    def setup_connections(self) -> None:
        self.endpoint_a.conn_open_init()
        self.endpoint_b.conn_open_try()
        self.endpoint_a.conn_open_ack()
        self.endpoint_b.conn_open_confirm()

    def create_channels(self) -> None:
        self.endpoint_a.chan_open_init()
        self.endpoint_b.chan_open_try()
        self.endpoint_a.chan_open_ack()
        self.endpoint_b.chan_open_confirm()

    def is_open(self) -> bool:
        for ep in (self.endpoint_a, self.endpoint_b):
            if not ep.channel_id:
                return False
            if ep.get_channel().state != State.OPEN:
                return False
        return True


def new_path(chain_a: TestChain, chain_b: TestChain) -> Path:
    """Path with the mock port/version, UNORDERED."""
    if chain_a is chain_b:
        raise HandshakeError("path_endpoints_identical", {"chain_id": chain_a.chain_id})
    if chain_a.coordinator is not chain_b.coordinator:
        raise HandshakeError(
            "path_coordinator_mismatch",
            {"chain_a": chain_a.chain_id, "chain_b": chain_b.chain_id},
        )
    coord = chain_a.coordinator
    for c in (chain_a, chain_b):
        if coord.get_chain(c.chain_id) is not c:
            raise ChainNotFound(c.chain_id)
    return Path(Endpoint(chain_a), Endpoint(chain_b))


def new_transfer_path(chain_a: TestChain, chain_b: TestChain) -> Path:
    """Fungible token transfer path: port `transfer`, version `ics20-1`, UNORDERED."""
    path = new_path(chain_a, chain_b)
    for ep in (path.endpoint_a, path.endpoint_b):
        ep.channel_config = ChannelConfig(port_id=TRANSFER_PORT, version=TRANSFER_VERSION, order=Order.UNORDERED)
    return path
