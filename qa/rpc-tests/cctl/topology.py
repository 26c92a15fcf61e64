#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Network topology as reported by the CCTL control scripts.

The parsers in cctl.parsers produce NodeRecord/SidecarRecord values and
(id, ports) pairs; join_topology matches them up into the CasperNode and
CasperSidecar descriptors held by a running CCTLNetwork.
"""

from dataclasses import dataclass
from enum import Enum

from .util import CCTLError


class RunState(Enum):
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


@dataclass(frozen=True)
class NodeRecord:
    validator_group_id: int
    node_id: int
    state: RunState


@dataclass(frozen=True)
class SidecarRecord:
    validator_group_id: int
    node_id: int
    state: RunState


@dataclass(frozen=True)
class NodePorts:
    protocol_port: int
    binary_port: int
    rest_port: int
    sse_port: int


@dataclass(frozen=True)
class SidecarPorts:
    node_client_port: int
    rpc_port: int
    speculative_exec_port: int


@dataclass(frozen=True)
class CasperNode:
    id: int
    validator_group_id: int
    state: RunState
    port: NodePorts


@dataclass(frozen=True)
class CasperSidecar:
    id: int
    validator_group_id: int
    state: RunState
    port: SidecarPorts


class MissingPortsError(CCTLError):
    def __init__(self, kind, node_id):
        self.kind = kind
        self.node_id = node_id
        super().__init__("Can't find ports for %s with id %d" % (kind, node_id))


def find_ports(ports, node_id):
    """Return the first ports entry of an (id, ports) sequence for node_id, or None."""
    for ports_id, entry in ports:
        if ports_id == node_id:
            return entry
    return None


def join_topology(records, node_ports, sidecar_ports):
    """
    Match started processes with their reported ports.

    Args:
        records: NodeRecord/SidecarRecord values, as parsed from net-start output
        node_ports: (node id, NodePorts) pairs
        sidecar_ports: (sidecar id, SidecarPorts) pairs

    Returns:
        (nodes, sidecars) tuples, each in the order of `records`.

    Every started process reports its ports before the topology is queried,
    so a record without ports raises MissingPortsError.
    """
    nodes = []
    sidecars = []
    for record in records:
        if isinstance(record, SidecarRecord):
            port = find_ports(sidecar_ports, record.node_id)
            if port is None:
                raise MissingPortsError("sidecar", record.node_id)
            sidecars.append(CasperSidecar(
                id=record.node_id,
                validator_group_id=record.validator_group_id,
                state=record.state,
                port=port,
            ))
        else:
            port = find_ports(node_ports, record.node_id)
            if port is None:
                raise MissingPortsError("node", record.node_id)
            nodes.append(CasperNode(
                id=record.node_id,
                validator_group_id=record.validator_group_id,
                state=record.state,
                port=port,
            ))
    return tuple(nodes), tuple(sidecars)
