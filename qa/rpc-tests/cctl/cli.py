#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
cctld: run a CCTL network until interrupted.

    cctld --working-dir /tmp/cctl --deploy-contract counter_hash:counter.wasm

Once the network is up (and the contracts are deployed) readiness is
reported to systemd through NOTIFY_SOCKET, if set. SIGINT or SIGTERM stops
the network. The log level comes from CCTL_LOG (default INFO); logs go to
stderr.
"""

import argparse
import logging
import os
import signal
import socket
import sys

from .deploy import DeployableContract
from .network import CCTLNetwork
from .rpc import TRACE
from .util import CCTLError

log = logging.getLogger("cctld")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="cctld", description=__doc__.strip().splitlines()[0])
    parser.add_argument("-w", "--working-dir", help="directory to keep the network's state in")
    parser.add_argument("-d", "--deploy-contract", dest="contracts", action="append",
                        type=DeployableContract.from_arg, default=[],
                        help="contract to deploy, as hash_name:path or a JSON description; "
                             "may be repeated")
    parser.add_argument("-c", "--chainspec-path", help="chainspec to set the network up with")
    parser.add_argument("--config-path", help="node config to set the network up with")
    return parser.parse_args(argv)


def configure_logging(level_name=None):
    level_name = (level_name or os.getenv("CCTL_LOG") or "INFO").upper()
    level = TRACE if level_name == "TRACE" else getattr(logging, level_name, logging.INFO)
    logging.basicConfig(format='%(asctime)s %(levelname)s %(name)s: %(message)s',
                        level=level, stream=sys.stderr)


def notify_ready():
    """Send READY=1 to the service manager, if there is one."""
    address = os.getenv("NOTIFY_SOCKET")
    if not address:
        return False
    if address.startswith("@"):
        address = "\0" + address[1:]
    with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
        try:
            sock.connect(address)
            sock.sendall(b"READY=1")
        except OSError as e:
            log.warning("Could not notify readiness on %s: %s", address, e)
            return False
    return True


def main(argv=None):
    args = parse_args(argv)
    configure_logging()

    # SIGTERM unwinds like Ctrl-C so the network gets stopped
    signal.signal(signal.SIGTERM, signal.default_int_handler)
    try:
        with CCTLNetwork.run(args.working_dir, args.contracts, args.chainspec_path,
                             args.config_path) as network:
            log.info("Network is running in %s", network.working_dir)
            notify_ready()
            signal.pause()
    except KeyboardInterrupt:
        log.info("Interrupted, network stopped")
    except CCTLError as e:
        log.error("%s", e)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
