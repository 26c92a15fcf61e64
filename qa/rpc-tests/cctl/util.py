#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .


#
# Helpful routines for driving a CCTL network
#

import logging
import os
import subprocess
from binascii import hexlify, unhexlify
from collections import namedtuple

log = logging.getLogger(__name__)

# Environment binding every CCTL command is run with
CCTL_ASSETS_ENV = "CCTL_ASSETS"
# Consulted when no explicit chainspec/config path is given
CHAINSPEC_ENV = "CCTL_CASPER_CHAINSPEC"
NODE_CONFIG_ENV = "CCTL_CASPER_NODE_CONFIG"

NET_SETUP = "cctl-infra-net-setup"
NET_START = "cctl-infra-net-start"
NET_STOP = "cctl-infra-net-stop"
NODE_VIEW_PORTS = "cctl-infra-node-view-ports"
SIDECAR_VIEW_PORTS = "cctl-infra-sidecar-view-ports"
AWAIT_BLOCK = "cctl-chain-await-until-block-n"


class CCTLError(Exception):
    """Base class for every error raised while driving a CCTL network."""


class CommandError(CCTLError):
    def __init__(self, command, returncode=None, stderr="", reason=None):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        if reason is None:
            reason = "exited with status %s" % returncode
        super().__init__("%s %s%s" % (
            command, reason, ("\n" + stderr.strip()) if stderr and stderr.strip() else ""))


CommandOutput = namedtuple("CommandOutput", ["stdout", "stderr"])


def assets_dir(working_dir):
    return os.path.join(str(working_dir), "assets")


def cctl_command(name, assets, *args, log_output=True):
    """
    Run a CCTL control command against an assets directory.

    Args:
        name (str): the command, looked up on PATH
        assets (str): the assets directory, exported as CCTL_ASSETS
        args (str): optional key=value arguments

    Kwargs:
        log_output (bool): log the command's stdout at INFO

    Returns:
        CommandOutput with the captured stdout and stderr as text.

    A command that can't be spawned or exits non-zero raises CommandError.
    """
    env = dict(os.environ)
    env[CCTL_ASSETS_ENV] = str(assets)
    cmd = [name] + [str(a) for a in args]
    log.debug("Running %s with %s=%s", " ".join(cmd), CCTL_ASSETS_ENV, assets)
    try:
        proc = subprocess.run(cmd, env=env, stdout=subprocess.PIPE,
                              stderr=subprocess.PIPE, check=False)
    except OSError as e:
        raise CommandError(name, reason="could not be started: %s" % e) from e
    stdout = proc.stdout.decode("utf-8", errors="replace")
    stderr = proc.stderr.decode("utf-8", errors="replace")
    if proc.returncode != 0:
        raise CommandError(name, proc.returncode, stderr)
    if log_output and stdout.strip():
        log.info("%s", stdout.rstrip())
    return CommandOutput(stdout, stderr)


def env_path(name):
    value = os.getenv(name)
    return value if value else None


def rpc_url(port, host="0.0.0.0"):
    return "http://%s:%d/rpc" % (host, int(port))


def bytes_to_hex_str(byte_str):
    return hexlify(byte_str).decode('ascii')

def hex_str_to_bytes(hex_str):
    return unhexlify(hex_str.strip().encode('ascii'))

def assert_equal(expected, actual, message=""):
    if expected != actual:
        if message:
            message = "; %s" % message
        raise AssertionError("(left == right)%s\n  left: <%s>\n right: <%s>" % (message, str(expected), str(actual)))

def assert_true(condition, message = ""):
    if not condition:
        raise AssertionError(message)

def assert_greater_than(thing1, thing2):
    if thing1 <= thing2:
        raise AssertionError("%s <= %s"%(str(thing1),str(thing2)))
