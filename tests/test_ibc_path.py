from __future__ import annotations

from typing import Tuple

import pytest

from ledgertest.ibc.chain import TestChain, new_test_chain
from ledgertest.ibc.coordinator import Coordinator, new_coordinator
from ledgertest.ibc.path import (
    MOCK_PORT,
    MOCK_VERSION,
    TRANSFER_PORT,
    TRANSFER_VERSION,
    ChannelConfig,
    new_path,
    new_transfer_path,
)
from ledgertest.ibc.store import Order, State
from ledgertest.runtime.block import SignedHeader
from ledgertest.runtime.errors import ChainNotFound, HandshakeError


def _mk_chains() -> Tuple[Coordinator, TestChain, TestChain]:
    coord = new_coordinator(2)
    a, b = (coord.get_chain(i) for i in coord.chain_ids())
    return coord, a, b


def test_transfer_path_opens_channel() -> None:
    coord, a, b = _mk_chains()
    path = new_transfer_path(a, b)

    coord.setup(path)

    assert path.is_open()
    for ep in (path.endpoint_a, path.endpoint_b):
        ch = ep.get_channel()
        assert ep.channel_config.port_id == TRANSFER_PORT
        assert ch.version == TRANSFER_VERSION
        assert ch.order == Order.UNORDERED
        assert ep.channel_id == "channel-0"
        assert ep.connection_id == "connection-0"
        assert ep.client_id == "07-tendermint-0"
        assert ep.get_connection().state == State.OPEN

    a_chan = path.endpoint_a.get_channel()
    assert a_chan.counterparty_channel_id == path.endpoint_b.channel_id
    assert a_chan.counterparty_port_id == TRANSFER_PORT


def test_handshake_commits_blocks_on_both_chains() -> None:
    coord, a, b = _mk_chains()
    ha, hb = a.height(), b.height()
    t0 = coord.current_time

    new_transfer_path(a, b).setup()

    assert a.height() > ha
    assert b.height() > hb
    assert coord.current_time > t0
    assert a.current_header.time == b.current_header.time == coord.current_time


def test_light_clients_track_counterparty() -> None:
    coord, a, b = _mk_chains()
    path = new_transfer_path(a, b)
    path.setup()

    client = a.ibc.client(path.endpoint_a.client_id)
    assert client.chain_id == b.chain_id
    assert client.latest_height >= 1
    assert client.consensus_states[client.latest_height].header_hash


def test_default_path_uses_mock_channel() -> None:
    _, a, b = _mk_chains()
    path = new_path(a, b)
    assert path.endpoint_a.channel_config.port_id == MOCK_PORT
    assert path.endpoint_a.channel_config.version == MOCK_VERSION

    path.setup()
    assert path.is_open()


def test_is_open_before_setup() -> None:
    _, a, b = _mk_chains()
    assert not new_transfer_path(a, b).is_open()


def test_channel_version_mismatch() -> None:
    _, a, b = _mk_chains()
    path = new_transfer_path(a, b)
    path.endpoint_b.channel_config = ChannelConfig(port_id=TRANSFER_PORT, version="ics20-2")
    path.setup_clients()
    path.setup_connections()

    with pytest.raises(HandshakeError) as ei:
        path.create_channels()
    assert ei.value.reason == "channel_version_mismatch"
    assert not path.is_open()


def test_channel_order_mismatch() -> None:
    _, a, b = _mk_chains()
    path = new_transfer_path(a, b)
    path.endpoint_b.channel_config = ChannelConfig(
        port_id=TRANSFER_PORT,
        version=TRANSFER_VERSION,
        order=Order.ORDERED,
    )
    path.setup_clients()
    path.setup_connections()

    with pytest.raises(HandshakeError) as ei:
        path.create_channels()
    assert ei.value.reason == "channel_order_mismatch"


def test_unsigned_counterparty_header_is_rejected() -> None:
    _, a, b = _mk_chains()
    path = new_transfer_path(a, b)
    signed = b.signed_header()
    b.last_header = SignedHeader(header=signed.header, validator_set=signed.validator_set, signatures={})

    with pytest.raises(HandshakeError) as ei:
        path.endpoint_a.create_client()
    assert ei.value.reason == "invalid_header_signatures"


def test_path_requires_distinct_chains() -> None:
    _, a, _ = _mk_chains()
    with pytest.raises(HandshakeError) as ei:
        new_path(a, a)
    assert ei.value.reason == "path_endpoints_identical"


def test_path_requires_same_coordinator() -> None:
    _, a, _ = _mk_chains()
    _, other, _ = _mk_chains()
    with pytest.raises(HandshakeError) as ei:
        new_transfer_path(a, other)
    assert ei.value.reason == "path_coordinator_mismatch"


def test_path_requires_registered_chains() -> None:
    coord, a, _ = _mk_chains()
    stray = new_test_chain(coord, "stray-1")
    with pytest.raises(ChainNotFound):
        new_transfer_path(a, stray)
