#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

"""
Parsers for the diagnostic output of the CCTL control scripts.

cctl-infra-net-start ends its report with one supervisor line per process:

    validator-group-1:cctl-node-1            RUNNING   pid 626095, uptime 0:00:03
    validator-group-1:cctl-node-1-sidecar    RUNNING   pid 626096, uptime 0:00:03

cctl-infra-node-view-ports and cctl-infra-sidecar-view-ports print one
section per process, every line carrying a timestamped log prefix:

    ... CCTL :: NODE-1
    ... CCTL ::     PROTOCOL ----> 11101
    ... CCTL ::     BINARY ------> 12101
    ... CCTL ::     REST --------> 13101
    ... CCTL ::     SSE ---------> 14101

Sequences are parsed greedily: the first line or section that doesn't
match ends the sequence and everything after it is ignored.

The private helpers take (text, pos) and return (value, new_pos), raising
ParseError when the input doesn't match at pos.
"""

import re

from .topology import NodePorts, NodeRecord, RunState, SidecarPorts, SidecarRecord
from .util import CCTLError

_DIGITS = re.compile(r"[0-9]+")
_MULTISPACE = re.compile(r"[ \t\r\n]*")
_SPACE1 = re.compile(r"[ \t]+")

NODE_PORT_TOKENS = ("PROTOCOL", "BINARY", "REST", "SSE")
SIDECAR_PORT_TOKENS = ("NODE-CLIENT", "MAIN-RPC", "SPEC-EXEC")


class ParseError(CCTLError):
    def __init__(self, expected, text, pos):
        self.expected = expected
        self.pos = pos
        excerpt = text[pos:pos + 40].split("\n", 1)[0]
        super().__init__("expected %s at offset %d, found %r" % (expected, pos, excerpt))


def _tag(text, pos, literal):
    if not text.startswith(literal, pos):
        raise ParseError(repr(literal), text, pos)
    return pos + len(literal)


def _take_until(text, pos, literal):
    found = text.find(literal, pos)
    if found < 0:
        raise ParseError(repr(literal), text, pos)
    return found


def _unsigned(text, pos, bits):
    match = _DIGITS.match(text, pos)
    if match is None:
        raise ParseError("u%d" % bits, text, pos)
    value = int(match.group())
    if value >= 1 << bits:
        raise ParseError("u%d" % bits, text, pos)
    return value, match.end()


def _multispace0(text, pos):
    return _MULTISPACE.match(text, pos).end()


def _space1(text, pos):
    match = _SPACE1.match(text, pos)
    if match is None:
        raise ParseError("whitespace", text, pos)
    return match.end()


def _line_ending(text, pos):
    if text.startswith("\r\n", pos):
        return pos + 2
    return _tag(text, pos, "\n")


def _not_line_ending(text, pos):
    end = text.find("\n", pos)
    if end < 0:
        return len(text)
    if end > pos and text[end - 1] == "\r":
        return end - 1
    return end


def _node_state(text, pos):
    for state in RunState:
        if text.startswith(state.value, pos):
            return state, pos + len(state.value)
    raise ParseError("RUNNING or STOPPED", text, pos)


def _process_line(text, pos, suffix):
    pos = _multispace0(text, pos)
    pos = _tag(text, pos, "validator-group-")
    group_id, pos = _unsigned(text, pos, 8)
    pos = _tag(text, pos, ":cctl-node-")
    node_id, pos = _unsigned(text, pos, 8)
    if suffix:
        pos = _tag(text, pos, suffix)
    pos = _space1(text, pos)
    state, pos = _node_state(text, pos)
    return (group_id, node_id, state), _not_line_ending(text, pos)


def _node_line(text, pos):
    fields, pos = _process_line(text, pos, None)
    return NodeRecord(*fields), pos


def _sidecar_line(text, pos):
    fields, pos = _process_line(text, pos, "-sidecar")
    return SidecarRecord(*fields), pos


def _net_start_line(text, pos):
    # The sidecar pattern extends the node pattern, so it goes first
    try:
        return _sidecar_line(text, pos)
    except ParseError:
        return _node_line(text, pos)


def _separated_list(text, pos, element):
    items = []
    try:
        item, pos = element(text, pos)
    except ParseError:
        return items, pos
    items.append(item)
    while True:
        try:
            after = _tag(text, pos, "\n")
            item, after = element(text, after)
        except ParseError:
            return items, pos
        items.append(item)
        pos = after


def _header_id(text, pos, header):
    pos = _take_until(text, pos, header)
    pos = _tag(text, pos, header)
    return _unsigned(text, pos, 8)


def _port(text, pos, port_type):
    pos = _take_until(text, pos, port_type)
    pos = _take_until(text, pos, "-> ")
    pos = _tag(text, pos, "-> ")
    return _unsigned(text, pos, 16)


def _port_section(text, pos, header, tokens):
    section_id, pos = _header_id(text, pos, header)
    ports = []
    for token in tokens:
        pos = _line_ending(text, pos)
        port, pos = _port(text, pos, token)
        ports.append(port)
    return (section_id, ports), _not_line_ending(text, pos)


def _node_port_section(text, pos):
    (node_id, ports), pos = _port_section(text, pos, "NODE-", NODE_PORT_TOKENS)
    return (node_id, NodePorts(*ports)), pos


def _sidecar_port_section(text, pos):
    (sidecar_id, ports), pos = _port_section(text, pos, "SIDECAR-", SIDECAR_PORT_TOKENS)
    return (sidecar_id, SidecarPorts(*ports)), pos


def parse_node_state(text):
    return _node_state(text, 0)[0]


def parse_node_line(line):
    return _node_line(line, 0)[0]


def parse_sidecar_line(line):
    return _sidecar_line(line, 0)[0]


def parse_net_start_line(line):
    return _net_start_line(line, 0)[0]


def parse_net_start_lines(output):
    """
    Parse the process table printed by cctl-infra-net-start.

    Everything before the first 'validator-group' is banner noise; its
    absence raises ParseError. Returns NodeRecord and SidecarRecord values
    in output order, stopping at the first line that matches neither.
    """
    pos = _take_until(output, 0, "validator-group")
    return _separated_list(output, pos, _net_start_line)[0]


def parse_node_view_ports_node_id(text):
    return _header_id(text, 0, "NODE-")[0]


def parse_sidecar_view_ports_node_id(text):
    return _header_id(text, 0, "SIDECAR-")[0]


def parse_view_ports_port(port_type, text):
    """Scan forward to port_type, then return the u16 following the next '-> '."""
    return _port(text, 0, port_type)[0]


def parse_node_view_port_section(text):
    return _node_port_section(text, 0)[0]


def parse_node_view_port_lines(output):
    """Return (node id, NodePorts) pairs from cctl-infra-node-view-ports output."""
    return _separated_list(output, 0, _node_port_section)[0]


def parse_sidecar_view_port_section(text):
    return _sidecar_port_section(text, 0)[0]


def parse_sidecar_view_port_lines(output):
    """Return (sidecar id, SidecarPorts) pairs from cctl-infra-sidecar-view-ports output."""
    return _separated_list(output, 0, _sidecar_port_section)[0]
