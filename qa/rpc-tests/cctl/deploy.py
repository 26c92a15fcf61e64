#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Contract deployment onto a running CCTL network.

deploy_contract() submits the wasm as a module-bytes deploy, waits for the
deploy to be executed, then looks up the contract hash the contract stored
under its hash name in the deployer's named keys.

Waiting is a small state machine driven by info_get_deploy:

    no execution info / no execution result   -> pending, poll again
    execution result without error            -> success
    execution result with an error message    -> failure, never retried
    transport error (connection, HTTP)        -> pending, poll again
    any other RPC error                       -> failure

Once the deadline has passed, a pending state or any RPC error ends the
wait with DeployTimeoutError carrying the last observed error.
"""

import http.client
import json
import logging
import time

from .authproxy import JSONRPCException
from .backoff import ExponentialBackoff
from .bytesrepr import BytesreprError, RuntimeArgs
from .casper import ContractHash, InvalidKeyError, ModuleBytes, make_deploy, standard_payment
from .rpc import is_transport_error
from .util import CCTLError

log = logging.getLogger(__name__)

# max amount allowed to be used on gas fees
MAX_GAS_FEE_PAYMENT_AMOUNT = 10_000_000_000_000
CHAIN_NAME = "cspr-dev-cctl"
DEPLOY_TTL_MS = 60_000
MAX_CONTRACT_INIT_WAIT_TIME = 60

PENDING = "pending"
SUCCESS = "success"
FAILURE = "failure"

# fields a package version may carry its hash in, depending on the node version
_VERSION_HASH_FIELDS = ("contract_hash", "entity_addr", "addressable_entity_hash", "entity_hash")


class DeployFailedError(CCTLError):
    def __init__(self, message):
        self.error_message = message
        super().__init__(message)


class DeployTimeoutError(CCTLError):
    def __init__(self, last_error):
        self.last_error = last_error
        super().__init__("Timeout on error: %s" % (last_error,))


class UnexpectedStoredValueError(CCTLError):
    pass


class DeployableContract():
    """
    A contract to deploy when the network starts.

    hash_name is the named key the contract stores its hash under, see
    https://docs.rs/casper-contract/latest/casper_contract/contract_api/storage/fn.new_contract.html
    """

    def __init__(self, hash_name, path, runtime_args=None):
        self.hash_name = hash_name
        self.path = str(path)
        self.runtime_args = runtime_args if runtime_args is not None else RuntimeArgs()

    def __repr__(self):
        return "DeployableContract(%r, %r)" % (self.hash_name, self.path)

    def to_json(self):
        return json.dumps({"hash_name": self.hash_name,
                           "runtime_args": self.runtime_args.to_json(),
                           "path": self.path})

    @classmethod
    def from_json(cls, text):
        try:
            value = json.loads(text)
            return cls(value["hash_name"], value["path"],
                       RuntimeArgs.from_json(value.get("runtime_args")))
        except (ValueError, KeyError, TypeError, BytesreprError) as e:
            raise ValueError("invalid contract description %r: %s" % (text, e)) from e

    @classmethod
    def from_arg(cls, text):
        """Parse either a JSON description or the short form hash_name:path."""
        if text.lstrip().startswith("{"):
            return cls.from_json(text)
        hash_name, sep, path = text.partition(":")
        if not sep or not hash_name or not path:
            raise ValueError("expected hash_name:path, got %r" % text)
        return cls(hash_name, path)


def build_contract_deploy(secret_key, contract, timestamp=None, chain_name=CHAIN_NAME):
    with open(contract.path, "rb") as f:
        wasm = f.read()
    session = ModuleBytes(wasm, contract.runtime_args)
    return make_deploy(chain_name, session, standard_payment(MAX_GAS_FEE_PAYMENT_AMOUNT),
                       secret_key, timestamp=timestamp, ttl=DEPLOY_TTL_MS)


def classify_deploy_response(result):
    """
    Map an info_get_deploy result onto (state, detail).

    detail is the reason for PENDING or the error message for FAILURE.
    """
    execution_info = result.get("execution_info")
    if execution_info is None:
        return PENDING, "No execution info"
    execution_result = execution_info.get("execution_result")
    if execution_result is None:
        return PENDING, "No execution result"
    if "Version1" in execution_result:
        outcome = execution_result["Version1"]
        if "Failure" in outcome:
            return FAILURE, outcome["Failure"].get("error_message")
        if "Success" in outcome:
            return SUCCESS, None
    elif "Version2" in execution_result:
        error_message = execution_result["Version2"].get("error_message")
        if error_message is None:
            return SUCCESS, None
        return FAILURE, error_message
    return FAILURE, "Unexpected execution result %s" % json.dumps(execution_result)


def await_deploy_success(client, deploy_hash, timeout=MAX_CONTRACT_INIT_WAIT_TIME,
                         backoff=None, clock=time.monotonic, sleep=time.sleep):
    """
    Poll the deploy until it has been executed successfully.

    Returns the last info_get_deploy result. Raises DeployFailedError for
    an execution failure, DeployTimeoutError when only pending states or
    errors were seen for longer than `timeout` seconds, and re-raises RPC
    errors that aren't transport errors.
    """
    if backoff is None:
        backoff = ExponentialBackoff()
    start = clock()
    while True:
        timed_out = clock() - start > timeout
        try:
            response = client.get_deploy(deploy_hash)
        except (JSONRPCException, OSError, http.client.HTTPException) as err:
            log.info("Waited %ds for successful contract initialization, "
                     "the last reported error was: %r", clock() - start, err)
            if timed_out:
                raise DeployTimeoutError(err) from err
            if not is_transport_error(err):
                raise
        else:
            state, detail = classify_deploy_response(response)
            if state == SUCCESS:
                return response
            if state == FAILURE:
                raise DeployFailedError(detail)
            if timed_out:
                raise DeployTimeoutError(detail)
            log.debug("Deploy %s: %s", deploy_hash, detail)
        sleep(next(backoff))


def _version_hash(entry):
    if isinstance(entry, dict):
        for field in _VERSION_HASH_FIELDS:
            if isinstance(entry.get(field), str):
                return entry[field]
    elif isinstance(entry, (list, tuple)) and entry and isinstance(entry[-1], str):
        return entry[-1]
    raise UnexpectedStoredValueError("No hash in package version %r" % (entry,))


def contract_hash_from_stored_value(stored_value):
    """The hash of the first version of a ContractPackage or Package stored value."""
    for shape in ("ContractPackage", "Package"):
        if isinstance(stored_value, dict) and shape in stored_value:
            versions = stored_value[shape].get("versions") or []
            if not versions:
                raise UnexpectedStoredValueError("Expected at least one contract version")
            formatted = _version_hash(versions[0])
            try:
                return ContractHash.from_hex(formatted.rsplit("-", 1)[-1])
            except InvalidKeyError as e:
                raise UnexpectedStoredValueError(str(e)) from e
    kind = list(stored_value) if isinstance(stored_value, dict) else type(stored_value).__name__
    raise UnexpectedStoredValueError(
        "Unexpected result type, type is not a package: %s" % (kind,))


def resolve_contract_hash(client, account_hash, hash_name):
    log.info("Fetching deployed contract hash")
    state_root_hash = client.get_state_root_hash()
    log.info("Querying global state")
    result = client.query_global_state(state_root_hash, account_hash.entity_key(), [hash_name])
    return contract_hash_from_stored_value(result.get("stored_value"))


def deploy_contract(client, secret_key, account_hash, contract, **wait_options):
    """
    Deploy a contract as the given account and resolve its contract hash.

    Returns (hash_name, ContractHash). wait_options go to await_deploy_success.
    """
    log.info("Deploying contract '%s': %s", contract.hash_name, contract.path)
    deploy = build_contract_deploy(secret_key, contract)

    log.info("Submitting contract deploy")
    deploy_hash = client.put_deploy(deploy)

    log.info("Waiting %ss for successful contract initialization",
             wait_options.get("timeout", MAX_CONTRACT_INIT_WAIT_TIME))
    await_deploy_success(client, deploy_hash, **wait_options)
    log.info("Contract was deployed successfully")

    contract_hash = resolve_contract_hash(client, account_hash, contract.hash_name)
    log.info("Successfully fetched the contract hash for %s: %s",
             contract.hash_name, contract_hash)
    return contract.hash_name, contract_hash
