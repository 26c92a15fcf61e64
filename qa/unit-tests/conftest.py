# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

import json
import os
import stat
import textwrap
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

NET_START_OUTPUT = textwrap.dedent("""\
    2024-08-30T17:15:10.262713 [INFO] [626072] CCTL :: ---------------------------------------------------------------------------------
    2024-08-30T17:15:10.265112 [INFO] [626072] CCTL :: Network start begins
    2024-08-30T17:15:10.268196 [INFO] [626072] CCTL :: ---------------------------------------------------------------------------------
    2024-08-30T17:15:12.583839 [INFO] [626072] CCTL :: Daemon supervisor -> started
    2024-08-30T17:15:13.801089 [INFO] [626072] CCTL :: Genesis bootstrap nodes -> started
    2024-08-30T17:15:14.966443 [INFO] [626072] CCTL :: Genesis non-bootstrap nodes -> started
    validator-group-1:cctl-node-1            RUNNING   pid 626095, uptime 0:00:03
    validator-group-1:cctl-node-1-sidecar    RUNNING   pid 626096, uptime 0:00:03
    validator-group-1:cctl-node-2            RUNNING   pid 626097, uptime 0:00:03
    validator-group-1:cctl-node-2-sidecar    RUNNING   pid 626098, uptime 0:00:03
    validator-group-2:cctl-node-3            STOPPED   Not started
    validator-group-2:cctl-node-3-sidecar    STOPPED   Not started
    2024-08-30T17:15:15.108318 [INFO] [626072] CCTL :: ---------------------------------------------------------------------------------
    2024-08-30T17:15:15.110310 [INFO] [626072] CCTL :: Network start ends
    2024-08-30T17:15:15.112531 [INFO] [626072] CCTL :: ---------------------------------------------------------------------------------
""")

DASHES = "-" * 102


def node_ports_output(ids):
    lines = ["2024-09-02T08:44:46.865013 [INFO] [124520] CCTL :: " + DASHES]
    for i in ids:
        lines += [
            "2024-09-02T08:44:46.871632 [INFO] [124520] CCTL :: NODE-%d" % i,
            "2024-09-02T08:44:46.874259 [INFO] [124520] CCTL ::     PROTOCOL ----> %d" % (11100 + i),
            "2024-09-02T08:44:46.876701 [INFO] [124520] CCTL ::     BINARY ------> %d" % (12100 + i),
            "2024-09-02T08:44:46.879103 [INFO] [124520] CCTL ::     REST --------> %d" % (13100 + i),
            "2024-09-02T08:44:46.881573 [INFO] [124520] CCTL ::     SSE ---------> %d" % (14100 + i),
            "2024-09-02T08:44:46.883303 [INFO] [124520] CCTL :: " + DASHES,
        ]
    return "\n".join(lines) + "\n"


def sidecar_ports_output(ids, rpc_ports=None):
    rpc_ports = rpc_ports or {}
    lines = [
        "2024-09-02T09:49:32.792987 [INFO] [194431] CCTL :: " + DASHES,
        "2024-09-02T09:49:32.794753 [INFO] [194431] CCTL :: SIDECAR PORTS",
        "2024-09-02T09:49:32.796968 [INFO] [194431] CCTL :: " + DASHES,
    ]
    for i in ids:
        lines += [
            "2024-09-02T09:49:32.804362 [INFO] [194431] CCTL :: SIDECAR-%d" % i,
            "2024-09-02T09:49:32.807243 [INFO] [194431] CCTL ::     NODE-CLIENT -> %d" % (12100 + i),
            "2024-09-02T09:49:32.809625 [INFO] [194431] CCTL ::     MAIN-RPC ----> %d" % rpc_ports.get(i, 21100 + i),
            "2024-09-02T09:49:32.811288 [INFO] [194431] CCTL ::     SPEC-EXEC ---> %d" % (22100 + i),
        ]
    return "\n".join(lines) + "\n"


class FakeCCTL():
    """Shell scripts standing in for the CCTL commands, put first on PATH."""

    def __init__(self, bin_dir):
        self.bin_dir = bin_dir
        self.calls_log = bin_dir / "calls.log"

    def script(self, name, body):
        path = self.bin_dir / name
        path.write_text("#!/bin/sh\necho \"%s $* CCTL_ASSETS=$CCTL_ASSETS\" >> '%s'\n%s\n"
                        % (name, self.calls_log, body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def output(self, name, text, status=0):
        data = self.bin_dir / (name + ".out")
        data.write_text(text)
        self.script(name, "cat '%s'\nexit %d" % (data, status))

    def calls(self):
        if not self.calls_log.exists():
            return []
        return [line.split(" ", 1)[0] for line in self.calls_log.read_text().splitlines()]

    def call_lines(self):
        return self.calls_log.read_text().splitlines() if self.calls_log.exists() else []

    def install_network(self, node_ids=(1, 2, 3), sidecar_rpc_ports=None):
        self.script("cctl-infra-net-setup", 'mkdir -p "$CCTL_ASSETS"\necho "setup done"')
        self.output("cctl-infra-net-start", NET_START_OUTPUT)
        self.output("cctl-infra-node-view-ports", node_ports_output(node_ids))
        self.output("cctl-infra-sidecar-view-ports", sidecar_ports_output(node_ids, sidecar_rpc_ports))
        self.script("cctl-chain-await-until-block-n", 'echo "block 1 reached"')
        self.script("cctl-infra-net-stop", 'echo "network stopped"\necho "stop diagnostics" >&2')


@pytest.fixture
def fake_cctl(tmp_path, monkeypatch):
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", "%s%s%s" % (bin_dir, os.pathsep, os.environ.get("PATH", "")))
    monkeypatch.delenv("CCTL_CASPER_CHAINSPEC", raising=False)
    monkeypatch.delenv("CCTL_CASPER_NODE_CONFIG", raising=False)
    return FakeCCTL(bin_dir)


class _RPCHandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        pass

    def do_POST(self):
        body = self.rfile.read(int(self.headers["Content-Length"]))
        request = json.loads(body)
        self.server.requests.append(request)
        handler = self.server.methods.get(request["method"])
        status = 200
        if handler is None:
            payload = {"jsonrpc": "2.0", "id": request["id"],
                       "error": {"code": -32601, "message": "Method not found"}}
        else:
            status, result = handler(request.get("params"))
            if status != 200 and result is None:
                self.send_response(status)
                self.send_header("Content-Type", "text/plain")
                self.send_header("Content-Length", "5")
                self.end_headers()
                self.wfile.write(b"error")
                return
            if isinstance(result, dict) and "error" in result and len(result) == 1:
                payload = {"jsonrpc": "2.0", "id": request["id"], "error": result["error"]}
            else:
                payload = {"jsonrpc": "2.0", "id": request["id"], "result": result}
        data = json.dumps(payload).encode("utf8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)


class FakeRPCServer():
    """
    A JSON-RPC endpoint on localhost. Register handlers in `methods`:
    each takes the request params and returns (http status, result);
    a result of {"error": {...}} is sent as a JSON-RPC error. A non-200
    status with a result of None gets a plain-text body.
    """

    def __init__(self):
        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), _RPCHandler)
        self.httpd.requests = []
        self.httpd.methods = {}
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    @property
    def port(self):
        return self.httpd.server_address[1]

    @property
    def url(self):
        return "http://127.0.0.1:%d/rpc" % self.port

    @property
    def methods(self):
        return self.httpd.methods

    @property
    def requests(self):
        return self.httpd.requests

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        self.httpd.shutdown()
        self.httpd.server_close()


@pytest.fixture
def rpc_server():
    server = FakeRPCServer().start()
    yield server
    server.stop()


class FakeClock():
    def __init__(self):
        self.now = 1000.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()
