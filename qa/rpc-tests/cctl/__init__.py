# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

from .deploy import DeployableContract
from .network import CCTLNetwork
from .topology import CasperNode, CasperSidecar, NodePorts, RunState, SidecarPorts

__all__ = [
    "CCTLNetwork",
    "CasperNode",
    "CasperSidecar",
    "DeployableContract",
    "NodePorts",
    "RunState",
    "SidecarPorts",
]
