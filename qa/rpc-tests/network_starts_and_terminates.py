#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Start a CCTL network, check every running sidecar answers RPC calls with
its node validating, then stop the network.
"""

from cctl.rpc import CasperClient, Verbosity
from cctl.test_framework import CCTLTestFramework
from cctl.topology import RunState
from cctl.util import assert_equal, assert_greater_than, assert_true, rpc_url


class NetworkStartsAndTerminatesTest(CCTLTestFramework):

    def run_test(self):
        network = self.network
        assert_greater_than(len(network.casper_nodes), 0)
        assert_equal(len(network.casper_nodes), len(network.casper_sidecars))

        running = [s for s in network.casper_sidecars if s.state == RunState.RUNNING]
        assert_true(running, "no sidecar is running")
        for sidecar in running:
            print("Checking sidecar %d on port %d" % (sidecar.id, sidecar.port.rpc_port))
            client = CasperClient(rpc_url(sidecar.port.rpc_port), Verbosity.HIGH)
            status = client.get_node_status()
            assert_equal("Validate", status["reactor_state"])

        network.stop()
        assert_true(not network.running, "network still marked as running")


if __name__ == '__main__':
    NetworkStartsAndTerminatesTest().main()
