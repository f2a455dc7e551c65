from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ledgertest.ibc.coordinator import GLOBAL_START_TIME, Coordinator, new_coordinator
from ledgertest.ibc.integration import IntegrationCoordinator, generate_dummy_chains, merge_chains
from ledgertest.network.config import with_chain_id, with_genesis_time
from ledgertest.network.network import new_unit_test_network


def test_merge_chains_second_wins() -> None:
    coord = new_coordinator(2)
    a, b = (coord.get_chain(i) for i in coord.chain_ids())
    left = {"x": a, "y": a}
    right = {"y": b, "z": b}

    merged = merge_chains(left, right)

    assert merged == {"x": a, "y": b, "z": b}
    assert left == {"x": a, "y": a}
    assert right == {"y": b, "z": b}


def test_generate_dummy_chains() -> None:
    coord = Coordinator()
    chains, ids = generate_dummy_chains(coord, 3)

    assert ids == ["dummychain-1", "dummychain-2", "dummychain-3"]
    assert sorted(chains) == ids
    for chain in chains.values():
        assert chain.height() == 2
        assert chain.sender_account is not None
        assert chain.sender_account.address.startswith("cosmos1")
    assert coord.current_time == GLOBAL_START_TIME + timedelta(seconds=15)


def test_single_network_gets_one_dummy_counterparty() -> None:
    net = new_unit_test_network()
    ic = IntegrationCoordinator([net])

    assert ic.get_dummy_chains_ids() == ["dummychain-1"]
    assert ic.get_chain(net.chain_id()).app is net.app

    path = ic.setup(net.chain_id(), "dummychain-1")
    assert path.is_open()
    assert path.endpoint_a.get_channel().version == "ics20-1"


def test_two_networks_need_no_dummies() -> None:
    net_a = new_unit_test_network()
    net_b = new_unit_test_network(with_chain_id("ledgertest_9000-2"))
    ic = IntegrationCoordinator([net_a, net_b])

    assert ic.get_dummy_chains_ids() == []
    assert ic.coordinator.chain_ids() == ["ledgertest_9000-1", "ledgertest_9000-2"]
    assert ic.setup("ledgertest_9000-1", "ledgertest_9000-2").is_open()


def test_explicit_dummy_count() -> None:
    ic = IntegrationCoordinator([new_unit_test_network()], dummy_chains=2)
    assert ic.get_dummy_chains_ids() == ["dummychain-1", "dummychain-2"]
    assert len(ic.coordinator.chains) == 3


def test_commit_all_is_one_clock_step() -> None:
    net = new_unit_test_network()
    ic = IntegrationCoordinator([net])
    heights = {cid: ic.get_chain(cid).height() for cid in ic.coordinator.chain_ids()}
    t0 = ic.coordinator.current_time

    ic.commit_all()

    assert ic.coordinator.current_time == t0 + timedelta(seconds=5)
    for cid, h in heights.items():
        assert ic.get_chain(cid).height() == h + 1
    assert net.last_block_height() == heights[net.chain_id()]


def test_network_with_later_genesis_time_keeps_time_monotonic() -> None:
    later = datetime(2030, 1, 1, tzinfo=timezone.utc)
    net = new_unit_test_network(with_genesis_time(later))
    ic = IntegrationCoordinator([net])
    chain = ic.get_chain(net.chain_id())
    before = chain.signed_header().header.time

    assert ic.coordinator.current_time >= later
    ic.coordinator.commit_block(chain)

    assert chain.signed_header().header.time >= before
    assert ic.setup(net.chain_id(), "dummychain-1").is_open()
