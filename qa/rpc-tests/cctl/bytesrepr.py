#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Casper byte representation of the values carried by a deploy.

Only what a deploy needs is covered: primitive encodings, CLType tags,
CLValue and RuntimeArgs. CLValues are kept in their serialized form
(bytes + cl_type), which is also how the node's JSON represents them, so
runtime args given as JSON pass through untouched.
"""

import struct

from .util import CCTLError, bytes_to_hex_str, hex_str_to_bytes

CL_TYPE_TAGS = {
    "Bool": 0,
    "I32": 1,
    "I64": 2,
    "U8": 3,
    "U32": 4,
    "U64": 5,
    "U128": 6,
    "U256": 7,
    "U512": 8,
    "Unit": 9,
    "String": 10,
    "Key": 11,
    "URef": 12,
    "Option": 13,
    "List": 14,
    "ByteArray": 15,
    "Result": 16,
    "Map": 17,
    "Tuple1": 18,
    "Tuple2": 19,
    "Tuple3": 20,
    "Any": 21,
    "PublicKey": 22,
}


class BytesreprError(CCTLError):
    pass


def u8(value):
    return struct.pack("<B", value)

def u32(value):
    return struct.pack("<I", value)

def u64(value):
    return struct.pack("<Q", value)

def big_uint(value, max_bytes=64):
    """U128/U256/U512: a length byte followed by the minimal little-endian bytes."""
    if value < 0:
        raise BytesreprError("negative value %d for unsigned type" % value)
    raw = value.to_bytes((value.bit_length() + 7) // 8, "little")
    if len(raw) > max_bytes:
        raise BytesreprError("value %d does not fit in %d bytes" % (value, max_bytes))
    return u8(len(raw)) + raw

def byte_list(value):
    return u32(len(value)) + bytes(value)

def string(value):
    return byte_list(value.encode("utf-8"))


def cl_type_bytes(cl_type):
    """
    Serialize a CLType given in its JSON form: a type name such as "U512",
    or a single-key dict for compound types, e.g. {"Option": "String"},
    {"ByteArray": 32}, {"Map": {"key": "String", "value": "U64"}}.
    """
    if isinstance(cl_type, str):
        if cl_type not in CL_TYPE_TAGS or cl_type in (
                "Option", "List", "ByteArray", "Result", "Map", "Tuple1", "Tuple2", "Tuple3"):
            raise BytesreprError("unknown or incomplete CLType %r" % cl_type)
        return u8(CL_TYPE_TAGS[cl_type])
    if not isinstance(cl_type, dict) or len(cl_type) != 1:
        raise BytesreprError("malformed CLType %r" % (cl_type,))
    (name, inner), = cl_type.items()
    if name not in CL_TYPE_TAGS:
        raise BytesreprError("unknown CLType %r" % name)
    tag = u8(CL_TYPE_TAGS[name])
    if name in ("Option", "List"):
        return tag + cl_type_bytes(inner)
    if name == "ByteArray":
        return tag + u32(int(inner))
    if name == "Result":
        return tag + cl_type_bytes(inner["ok"]) + cl_type_bytes(inner["err"])
    if name == "Map":
        return tag + cl_type_bytes(inner["key"]) + cl_type_bytes(inner["value"])
    if name in ("Tuple1", "Tuple2", "Tuple3"):
        if len(inner) != int(name[-1]):
            raise BytesreprError("%s needs %s element types" % (name, name[-1]))
        return tag + b"".join(cl_type_bytes(t) for t in inner)
    raise BytesreprError("CLType %r takes no parameters" % name)


class CLValue():
    """A serialized value together with its CLType."""

    def __init__(self, cl_type, raw, parsed=None):
        self.cl_type = cl_type
        self.bytes = bytes(raw)
        self.parsed = parsed
        # fail early on an unknown type
        cl_type_bytes(cl_type)

    def __eq__(self, other):
        return (isinstance(other, CLValue) and self.cl_type == other.cl_type
                and self.bytes == other.bytes)

    def __repr__(self):
        return "CLValue(%r, %s)" % (self.cl_type, bytes_to_hex_str(self.bytes))

    def to_bytes(self):
        return byte_list(self.bytes) + cl_type_bytes(self.cl_type)

    def to_json(self):
        return {"cl_type": self.cl_type, "bytes": bytes_to_hex_str(self.bytes),
                "parsed": self.parsed}

    @classmethod
    def from_json(cls, value):
        try:
            return cls(value["cl_type"], hex_str_to_bytes(value["bytes"]), value.get("parsed"))
        except (KeyError, TypeError, ValueError) as e:
            raise BytesreprError("malformed CLValue %r: %s" % (value, e)) from e

    @classmethod
    def bool(cls, value):
        return cls("Bool", u8(1 if value else 0), bool(value))

    @classmethod
    def u8(cls, value):
        return cls("U8", u8(value), value)

    @classmethod
    def u32(cls, value):
        return cls("U32", u32(value), value)

    @classmethod
    def u64(cls, value):
        return cls("U64", u64(value), value)

    @classmethod
    def u512(cls, value):
        return cls("U512", big_uint(value), str(value))

    @classmethod
    def string(cls, value):
        return cls("String", string(value), value)

    @classmethod
    def unit(cls):
        return cls("Unit", b"", None)

    @classmethod
    def byte_array(cls, value):
        return cls({"ByteArray": len(value)}, value, bytes_to_hex_str(value))

    @classmethod
    def option(cls, value, inner_type=None):
        """Some(value) for a CLValue, None (of inner_type) otherwise."""
        if value is None:
            if inner_type is None:
                raise BytesreprError("an empty Option needs its inner type")
            return cls({"Option": inner_type}, u8(0), None)
        return cls({"Option": value.cl_type}, u8(1) + value.bytes, value.parsed)


class RuntimeArgs():
    """Ordered named arguments passed to a contract."""

    def __init__(self, args=None):
        self.args = []
        for name, value in (args or {}).items():
            self.insert(name, value)

    def __len__(self):
        return len(self.args)

    def __eq__(self, other):
        return isinstance(other, RuntimeArgs) and self.args == other.args

    def insert(self, name, value):
        if not isinstance(value, CLValue):
            raise BytesreprError("runtime arg %r is not a CLValue" % name)
        self.args.append((name, value))
        return self

    def to_bytes(self):
        out = u32(len(self.args))
        for name, value in self.args:
            out += string(name) + value.to_bytes()
        return out

    def to_json(self):
        return [[name, value.to_json()] for name, value in self.args]

    @classmethod
    def from_json(cls, value):
        """Accepts the node's list form [[name, clvalue], ...] or a {name: clvalue} mapping."""
        if value is None:
            return cls()
        pairs = value.items() if isinstance(value, dict) else value
        args = cls()
        for pair in pairs:
            try:
                name, cl_value = pair
            except (TypeError, ValueError) as e:
                raise BytesreprError("malformed runtime arg %r" % (pair,)) from e
            args.insert(name, CLValue.from_json(cl_value))
        return args
