#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Start a CCTL network with a contract deployed and check its contract hash
was recorded in the working directory.

The contract wasm comes from --contract-wasm or CCTL_TEST_CONTRACT_WASM.
It must store its package hash under the named key 'kairos_contract_package_hash'
and accept an optional 32 byte 'initial_trie_root' argument.
"""

import os

from cctl.bytesrepr import CLValue, RuntimeArgs
from cctl.deploy import DeployableContract
from cctl.test_framework import CCTLTestFramework
from cctl.util import assert_equal, assert_true

HASH_NAME = "kairos_contract_package_hash"


class ContractDeploysSuccessfullyTest(CCTLTestFramework):

    def add_options(self, parser):
        parser.add_argument("--contract-wasm", dest="contract_wasm",
                            default=os.getenv("CCTL_TEST_CONTRACT_WASM"),
                            help="Wasm of the contract to deploy (default: $CCTL_TEST_CONTRACT_WASM)")

    def setup_network(self):
        if not self.options.contract_wasm:
            raise AssertionError("no contract wasm given, use --contract-wasm")
        self.contracts_to_deploy = [DeployableContract(
            HASH_NAME,
            self.options.contract_wasm,
            RuntimeArgs({"initial_trie_root": CLValue.option(None, {"ByteArray": 32})}),
        )]
        super().setup_network()

    def run_test(self):
        hash_path = os.path.join(self.network.working_dir, "contracts", HASH_NAME)
        assert_true(os.path.exists(hash_path), "%s was not written" % hash_path)

        contract_hash = self.network.get_contract_hash_for(HASH_NAME)
        assert_true(contract_hash.to_formatted_string().startswith("contract-"))
        with open(hash_path, "r", encoding="utf8") as f:
            assert_equal(contract_hash.to_hex(), f.read())


if __name__ == '__main__':
    ContractDeploysSuccessfullyTest().main()
