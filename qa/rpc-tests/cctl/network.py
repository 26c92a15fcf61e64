#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Lifecycle of a CCTL network.

    with CCTLNetwork.run(contracts_to_deploy=[contract]) as network:
        rpc_port = network.casper_sidecars[0].port.rpc_port
        ...

CCTLNetwork.run() sets up and starts the network, discovers the ports of
every node and sidecar, waits for the first block and deploys the requested
contracts. The returned network must be stopped exactly once: leaving the
`with` block or calling stop() runs cctl-infra-net-stop. A network that is
garbage collected, or still running at interpreter exit, is stopped then.

CCTL keeps its state under the working directory, so only one network may
use a working directory at a time. This is enforced with an advisory lock
on <working_dir>/cctl.lock, held from setup until the network is stopped.
"""

import errno
import fcntl
import logging
import os
import sys
import tempfile
import weakref

from .casper import ContractHash, PublicKey, SecretKey
from .deploy import deploy_contract
from .parsers import parse_net_start_lines, parse_node_view_port_lines, parse_sidecar_view_port_lines
from .rpc import CasperClient
from .topology import join_topology
from .util import (
    AWAIT_BLOCK,
    CHAINSPEC_ENV,
    NET_SETUP,
    NET_START,
    NET_STOP,
    NODE_CONFIG_ENV,
    NODE_VIEW_PORTS,
    SIDECAR_VIEW_PORTS,
    CCTLError,
    assets_dir,
    cctl_command,
    env_path,
    rpc_url,
)

log = logging.getLogger(__name__)

LOCK_FILE = "cctl.lock"
CONTRACTS_DIR = "contracts"
DEPLOYER_DIR = os.path.join("users", "user-1")


class NetworkLockedError(CCTLError):
    pass


class DirectoryLock():
    """Exclusive advisory lock on a file, shared by every process using it."""

    def __init__(self, path):
        self.path = path
        self.fd = None

    def acquire(self):
        fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            os.close(fd)
            if e.errno in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                raise NetworkLockedError(
                    "%s is held by another CCTL network" % self.path) from e
            raise
        os.ftruncate(fd, 0)
        os.write(fd, ("%d\n" % os.getpid()).encode("ascii"))
        self.fd = fd

    def release(self):
        if self.fd is not None:
            fcntl.flock(self.fd, fcntl.LOCK_UN)
            os.close(self.fd)
            self.fd = None


class _Teardown():
    # Must not reference the CCTLNetwork: the finalizer holds on to it
    def __init__(self, assets, lock):
        self.assets = assets
        self.lock = lock
        self.started = False

    def __call__(self):
        try:
            if self.started:
                log.info("Stopping the network")
                output = cctl_command(NET_STOP, self.assets, log_output=False)
                sys.stdout.write(output.stdout)
                sys.stdout.flush()
                sys.stderr.write(output.stderr)
                sys.stderr.flush()
        finally:
            self.lock.release()


class CCTLNetwork():
    def __init__(self, working_dir, lock):
        self.working_dir = str(working_dir)
        self.casper_nodes = ()
        self.casper_sidecars = ()
        self._teardown = _Teardown(self.assets_dir, lock)
        self._finalizer = weakref.finalize(self, self._teardown)

    @property
    def assets_dir(self):
        return assets_dir(self.working_dir)

    @property
    def running(self):
        return self._finalizer.alive

    @classmethod
    def run(cls, working_dir=None, contracts_to_deploy=None, chainspec_path=None,
            config_path=None):
        """
        Spin up a CCTL network, and deploy the given contracts.

        Without a working directory a fresh temporary one is used. Without
        a chainspec or config path, CCTL_CASPER_CHAINSPEC and
        CCTL_CASPER_NODE_CONFIG are consulted.

        Any error after setup began stops the network before propagating.
        """
        chainspec_path = chainspec_path or env_path(CHAINSPEC_ENV)
        config_path = config_path or env_path(NODE_CONFIG_ENV)

        if working_dir is None:
            working_dir = tempfile.mkdtemp(prefix="cctl-")
        else:
            os.makedirs(str(working_dir), exist_ok=True)
        log.info("Working directory: %s", working_dir)

        lock = DirectoryLock(os.path.join(str(working_dir), LOCK_FILE))
        lock.acquire()
        network = cls(working_dir, lock)
        try:
            network._start(contracts_to_deploy or [], chainspec_path, config_path)
        except BaseException:
            try:
                network.stop()
            except CCTLError as e:
                log.error("Failed to stop the network after a failed start: %s", e)
            raise
        return network

    def _start(self, contracts_to_deploy, chainspec_path, config_path):
        assets = self.assets_dir
        setup_args = []
        if chainspec_path:
            setup_args.append("chainspec=%s" % chainspec_path)
        if config_path:
            setup_args.append("config=%s" % config_path)

        log.info("Setting up network configuration")
        cctl_command(NET_SETUP, assets, *setup_args)

        self._teardown.started = True
        output = cctl_command(NET_START, assets)
        records = parse_net_start_lines(output.stdout)

        log.info("Fetching the networks node ports")
        node_ports = parse_node_view_port_lines(cctl_command(NODE_VIEW_PORTS, assets).stdout)

        log.info("Fetching the networks sidecar ports")
        sidecar_ports = parse_sidecar_view_port_lines(
            cctl_command(SIDECAR_VIEW_PORTS, assets).stdout)

        self.casper_nodes, self.casper_sidecars = join_topology(records, node_ports, sidecar_ports)

        log.info("Waiting for block 1")
        cctl_command(AWAIT_BLOCK, assets, "height=1")

        if contracts_to_deploy:
            self._deploy_contracts(contracts_to_deploy)

    def _deploy_contracts(self, contracts):
        if not self.casper_sidecars:
            raise CCTLError("No sidecar to deploy contracts through")
        client = CasperClient(rpc_url(self.casper_sidecars[0].port.rpc_port))
        deployer_dir = os.path.join(self.assets_dir, DEPLOYER_DIR)
        deployer_skey = SecretKey.from_file(os.path.join(deployer_dir, "secret_key.pem"))
        deployer_pkey = PublicKey.from_file(os.path.join(deployer_dir, "public_key.pem"))

        contracts_dir = os.path.join(self.working_dir, CONTRACTS_DIR)
        os.makedirs(contracts_dir, exist_ok=True)

        for contract in contracts:
            hash_name, contract_hash = deploy_contract(
                client, deployer_skey, deployer_pkey.to_account_hash(), contract)
            with open(os.path.join(contracts_dir, hash_name), "w", encoding="utf8") as f:
                f.write(contract_hash.to_hex())

    def get_contract_hash_for(self, hash_name):
        """The contract hash deployed for hash_name when the network was started."""
        path = os.path.join(self.working_dir, CONTRACTS_DIR, hash_name)
        with open(path, "r", encoding="utf8") as f:
            return ContractHash.from_hex(f.read())

    def stop(self):
        """Stop the network. Only the first call does anything."""
        self._finalizer()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.stop()
