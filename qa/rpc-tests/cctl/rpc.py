#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

#
# The sidecar RPC calls used to deploy contracts and inspect the network
#

import http.client
import logging
from enum import IntEnum

from .authproxy import HTTP_TIMEOUT, AuthServiceProxy, JSONRPCException
from .util import CCTLError

log = logging.getLogger(__name__)

TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Verbosity(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


def casper_client_verbosity(logger=log):
    """Pick the RPC verbosity from the level the logger is enabled for."""
    if logger.isEnabledFor(TRACE):
        return Verbosity.HIGH
    elif logger.isEnabledFor(logging.DEBUG):
        return Verbosity.MEDIUM
    return Verbosity.LOW


def is_transport_error(err):
    """
    True for failures to get a JSON-RPC response at all: connection errors
    and HTTP errors. An error object returned by the server is not one.
    """
    if isinstance(err, (OSError, http.client.HTTPException)):
        return True
    return isinstance(err, JSONRPCException) and err.http_status is not None


class CasperClient():
    def __init__(self, url, verbosity=None, timeout=HTTP_TIMEOUT):
        if verbosity is None:
            verbosity = casper_client_verbosity()
        self.url = url
        self.verbosity = verbosity
        self.proxy = AuthServiceProxy(url, timeout=timeout,
                                      log_bodies=verbosity >= Verbosity.HIGH)

    def put_deploy(self, deploy):
        """Submit a signed Deploy, returning the deploy hash the node reports."""
        result = self.proxy.account_put_deploy(deploy=deploy.to_json())
        return result["deploy_hash"]

    def get_deploy(self, deploy_hash, finalized_approvals=False):
        return self.proxy.info_get_deploy(deploy_hash=deploy_hash,
                                          finalized_approvals=finalized_approvals)

    def get_state_root_hash(self):
        result = self.proxy.chain_get_state_root_hash()
        state_root_hash = result.get("state_root_hash")
        if state_root_hash is None:
            raise CCTLError("No state root hash present in response")
        return state_root_hash

    def query_global_state(self, state_root_hash, key, path):
        return self.proxy.query_global_state(
            state_identifier={"StateRootHash": state_root_hash},
            key=key,
            path=list(path),
        )

    def get_node_status(self):
        return self.proxy.info_get_status()
