# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

import pytest

from cctl.parsers import parse_net_start_lines, parse_node_view_port_lines, parse_sidecar_view_port_lines
from cctl.topology import (
    CasperNode,
    CasperSidecar,
    MissingPortsError,
    NodePorts,
    NodeRecord,
    RunState,
    SidecarPorts,
    SidecarRecord,
    join_topology,
)

from conftest import NET_START_OUTPUT, node_ports_output, sidecar_ports_output


def ports(i):
    return NodePorts(11100 + i, 12100 + i, 13100 + i, 14100 + i)


def sidecar_ports(i):
    return SidecarPorts(12100 + i, 21100 + i, 22100 + i)


def test_join_matches_ports_by_id():
    records = [NodeRecord(1, 1, RunState.RUNNING), NodeRecord(1, 2, RunState.STOPPED)]
    node_ports = [(3, ports(3)), (2, ports(2)), (1, ports(1))]

    nodes, sidecars = join_topology(records, node_ports, [])

    assert nodes == (
        CasperNode(id=1, validator_group_id=1, state=RunState.RUNNING, port=ports(1)),
        CasperNode(id=2, validator_group_id=1, state=RunState.STOPPED, port=ports(2)),
    )
    assert sidecars == ()


def test_join_partitions_by_kind_in_order():
    records = [
        NodeRecord(1, 1, RunState.RUNNING),
        SidecarRecord(1, 1, RunState.RUNNING),
        SidecarRecord(2, 2, RunState.STOPPED),
        NodeRecord(2, 2, RunState.STOPPED),
    ]
    nodes, sidecars = join_topology(records, [(1, ports(1)), (2, ports(2))],
                                    [(1, sidecar_ports(1)), (2, sidecar_ports(2))])

    assert [n.id for n in nodes] == [1, 2]
    assert sidecars == (
        CasperSidecar(id=1, validator_group_id=1, state=RunState.RUNNING, port=sidecar_ports(1)),
        CasperSidecar(id=2, validator_group_id=2, state=RunState.STOPPED, port=sidecar_ports(2)),
    )


def test_join_first_ports_entry_wins():
    nodes, _ = join_topology([NodeRecord(1, 4, RunState.RUNNING)],
                             [(4, ports(4)), (4, ports(5))], [])
    assert nodes[0].port == ports(4)


def test_join_missing_node_ports():
    with pytest.raises(MissingPortsError) as excinfo:
        join_topology([NodeRecord(1, 1, RunState.RUNNING), NodeRecord(1, 9, RunState.RUNNING)],
                      [(1, ports(1)), (2, ports(2))], [])
    assert excinfo.value.kind == "node"
    assert excinfo.value.node_id == 9
    assert "Can't find ports for node with id 9" in str(excinfo.value)


def test_join_missing_sidecar_ports():
    # node ports exist for the id, but it's the sidecar table that counts
    with pytest.raises(MissingPortsError) as excinfo:
        join_topology([SidecarRecord(1, 1, RunState.RUNNING)], [(1, ports(1))], [])
    assert excinfo.value.kind == "sidecar"


def test_join_parsed_reports():
    nodes, sidecars = join_topology(
        parse_net_start_lines(NET_START_OUTPUT),
        parse_node_view_port_lines(node_ports_output([1, 2, 3])),
        parse_sidecar_view_port_lines(sidecar_ports_output([1, 2, 3])),
    )
    assert [(n.id, n.state) for n in nodes] == [
        (1, RunState.RUNNING), (2, RunState.RUNNING), (3, RunState.STOPPED)]
    assert [s.port.rpc_port for s in sidecars] == [21101, 21102, 21103]
