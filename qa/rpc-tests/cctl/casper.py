#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Keys, hashes and signed deploys.

A deploy is identified by the blake2b-256 digest of its serialized header;
the header commits to the body (payment + session) through body_hash.
Keys are the PEM files CCTL generates under assets/users/, loaded with
the `cryptography` package. Both Casper key algorithms are supported:
ed25519 (tag 01) and secp256k1 (tag 02).
"""

import hashlib
import time
from datetime import datetime, timezone

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .bytesrepr import CLValue, RuntimeArgs, byte_list, string, u8, u32, u64
from .util import CCTLError, bytes_to_hex_str, hex_str_to_bytes

ED25519_TAG = 1
SECP256K1_TAG = 2

# order of the secp256k1 group, signatures are normalized to low-s
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

HASH_LENGTH = 32


class InvalidKeyError(CCTLError):
    pass


def blake2b256(data):
    return hashlib.blake2b(data, digest_size=HASH_LENGTH).digest()


class PublicKey():
    def __init__(self, tag, raw):
        self.tag = tag
        self.raw = bytes(raw)

    def __eq__(self, other):
        return isinstance(other, PublicKey) and (self.tag, self.raw) == (other.tag, other.raw)

    def __repr__(self):
        return "PublicKey(%s)" % self.to_hex()

    @property
    def algorithm(self):
        return "ed25519" if self.tag == ED25519_TAG else "secp256k1"

    def to_bytes(self):
        return u8(self.tag) + self.raw

    def to_hex(self):
        return bytes_to_hex_str(self.to_bytes())

    def to_account_hash(self):
        return AccountHash(blake2b256(self.algorithm.encode("ascii") + b"\x00" + self.raw))

    @classmethod
    def from_crypto_key(cls, key):
        if isinstance(key, ed25519.Ed25519PublicKey):
            return cls(ED25519_TAG, key.public_bytes(
                serialization.Encoding.Raw, serialization.PublicFormat.Raw))
        if isinstance(key, ec.EllipticCurvePublicKey) and isinstance(key.curve, ec.SECP256K1):
            return cls(SECP256K1_TAG, key.public_bytes(
                serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint))
        raise InvalidKeyError("unsupported public key type %s" % type(key).__name__)

    @classmethod
    def from_file(cls, path):
        with open(path, "rb") as f:
            key = serialization.load_pem_public_key(f.read())
        return cls.from_crypto_key(key)


class SecretKey():
    def __init__(self, key):
        if isinstance(key, ed25519.Ed25519PrivateKey):
            self.tag = ED25519_TAG
        elif isinstance(key, ec.EllipticCurvePrivateKey) and isinstance(key.curve, ec.SECP256K1):
            self.tag = SECP256K1_TAG
        else:
            raise InvalidKeyError("unsupported secret key type %s" % type(key).__name__)
        self._key = key

    @classmethod
    def from_file(cls, path):
        with open(path, "rb") as f:
            return cls(serialization.load_pem_private_key(f.read(), password=None))

    def public_key(self):
        return PublicKey.from_crypto_key(self._key.public_key())

    def sign(self, message):
        """Signature over message, prefixed with the algorithm tag."""
        if self.tag == ED25519_TAG:
            return u8(self.tag) + self._key.sign(message)
        r, s = decode_dss_signature(self._key.sign(message, ec.ECDSA(hashes.SHA256())))
        if s > SECP256K1_ORDER // 2:
            s = SECP256K1_ORDER - s
        return u8(self.tag) + r.to_bytes(32, "big") + s.to_bytes(32, "big")


class _Hash():
    prefix = ""

    def __init__(self, value):
        value = bytes(value)
        if len(value) != HASH_LENGTH:
            raise InvalidKeyError("%s must be %d bytes, got %d" % (
                type(self).__name__, HASH_LENGTH, len(value)))
        self.value = value

    def __eq__(self, other):
        return type(self) is type(other) and self.value == other.value

    def __hash__(self):
        return hash(self.value)

    def __repr__(self):
        return "%s(%s)" % (type(self).__name__, self.to_hex())

    def __str__(self):
        return self.to_formatted_string()

    def to_hex(self):
        return bytes_to_hex_str(self.value)

    def to_formatted_string(self):
        return self.prefix + self.to_hex()

    @classmethod
    def from_hex(cls, hex_str):
        try:
            return cls(hex_str_to_bytes(hex_str))
        except ValueError as e:
            raise InvalidKeyError("invalid %s %r: %s" % (cls.__name__, hex_str, e)) from e

    @classmethod
    def from_formatted_str(cls, text):
        if not text.startswith(cls.prefix):
            raise InvalidKeyError("%r does not start with %r" % (text, cls.prefix))
        return cls.from_hex(text[len(cls.prefix):])


class AccountHash(_Hash):
    prefix = "account-hash-"

    def entity_key(self):
        """The global state key of the account's addressable entity."""
        return "entity-account-" + self.to_hex()


class ContractHash(_Hash):
    prefix = "contract-"


def format_timestamp(millis):
    moment = datetime.fromtimestamp(millis // 1000, tz=timezone.utc)
    return "%s.%03dZ" % (moment.strftime("%Y-%m-%dT%H:%M:%S"), millis % 1000)


def format_ttl(millis):
    """Human readable duration the node accepts, e.g. 60000 -> '1m'."""
    parts = []
    for suffix, size in (("day", 86400000), ("h", 3600000), ("m", 60000),
                         ("s", 1000), ("ms", 1)):
        count, millis = divmod(millis, size)
        if count:
            parts.append("%d%s" % (count, suffix))
    return " ".join(parts) or "0s"


class ModuleBytes():
    """An ExecutableDeployItem running the given wasm (empty for standard payment)."""

    tag = 0

    def __init__(self, module_bytes, args=None):
        self.module_bytes = bytes(module_bytes)
        self.args = args if args is not None else RuntimeArgs()

    def to_bytes(self):
        return u8(self.tag) + byte_list(self.module_bytes) + self.args.to_bytes()

    def to_json(self):
        return {"ModuleBytes": {"module_bytes": bytes_to_hex_str(self.module_bytes),
                                "args": self.args.to_json()}}


def standard_payment(amount):
    return ModuleBytes(b"", RuntimeArgs({"amount": CLValue.u512(amount)}))


class DeployHeader():
    def __init__(self, account, timestamp, ttl, gas_price, body_hash, chain_name,
                 dependencies=()):
        self.account = account
        self.timestamp = timestamp
        self.ttl = ttl
        self.gas_price = gas_price
        self.body_hash = body_hash
        self.chain_name = chain_name
        self.dependencies = list(dependencies)

    def to_bytes(self):
        return (self.account.to_bytes() + u64(self.timestamp) + u64(self.ttl)
                + u64(self.gas_price) + self.body_hash
                + u32(len(self.dependencies)) + b"".join(self.dependencies)
                + string(self.chain_name))

    def to_json(self):
        return {
            "account": self.account.to_hex(),
            "timestamp": format_timestamp(self.timestamp),
            "ttl": format_ttl(self.ttl),
            "gas_price": self.gas_price,
            "body_hash": bytes_to_hex_str(self.body_hash),
            "dependencies": [bytes_to_hex_str(d) for d in self.dependencies],
            "chain_name": self.chain_name,
        }


class Deploy():
    def __init__(self, header, payment, session):
        self.header = header
        self.payment = payment
        self.session = session
        self.hash = blake2b256(header.to_bytes())
        self.approvals = []

    def sign(self, secret_key):
        self.approvals.append((secret_key.public_key(), secret_key.sign(self.hash)))
        return self

    def to_json(self):
        return {
            "hash": bytes_to_hex_str(self.hash),
            "header": self.header.to_json(),
            "payment": self.payment.to_json(),
            "session": self.session.to_json(),
            "approvals": [{"signer": signer.to_hex(), "signature": bytes_to_hex_str(sig)}
                          for signer, sig in self.approvals],
        }


def make_deploy(chain_name, session, payment, secret_key, timestamp=None,
                ttl=60000, gas_price=1):
    """
    Build and sign a deploy with secret_key's account as the sender.

    timestamp and ttl are in milliseconds; timestamp defaults to now.
    """
    if timestamp is None:
        timestamp = int(time.time() * 1000)
    body_hash = blake2b256(payment.to_bytes() + session.to_bytes())
    header = DeployHeader(secret_key.public_key(), timestamp, ttl, gas_price,
                          body_hash, chain_name)
    return Deploy(header, payment, session).sign(secret_key)
