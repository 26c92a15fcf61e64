#!/usr/bin/env python3
# Copyright (c) 2011 Jeff Garzik
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .
"""
  JSON-RPC 2.0 service proxy for the Casper sidecar.

  Methods are looked up as attributes and called with keyword arguments,
  which become the named `params` of the request:

      proxy = AuthServiceProxy("http://0.0.0.0:21101/rpc")
      proxy.chain_get_state_root_hash()
      proxy.info_get_deploy(deploy_hash="...", finalized_approvals=False)
"""

import base64
import http.client
import json
import logging
import urllib.parse

USER_AGENT = "AuthServiceProxy/0.1"

HTTP_TIMEOUT = 600

log = logging.getLogger("CasperRPC")


class JSONRPCException(Exception):
    """
    An error object returned by the server, or a response that isn't
    JSON-RPC at all. `http_status` is set for the latter.
    """

    def __init__(self, rpc_error, http_status=None):
        try:
            errmsg = '%(message)s (%(code)i)' % rpc_error
        except (KeyError, TypeError):
            errmsg = ''
        super().__init__(errmsg)
        self.error = rpc_error
        self.http_status = http_status


class AuthServiceProxy():
    __id_count = 0

    def __init__(self, service_url, service_name=None, timeout=HTTP_TIMEOUT,
                 connection=None, log_bodies=False):
        self.__service_url = service_url
        self._service_name = service_name
        self.log_bodies = log_bodies
        self.__url = urllib.parse.urlparse(service_url)
        port = 80 if self.__url.port is None else self.__url.port
        self.__auth_header = None
        if self.__url.username is not None:
            authpair = ('%s:%s' % (self.__url.username, self.__url.password or '')).encode('utf8')
            self.__auth_header = b'Basic ' + base64.b64encode(authpair)
        self.timeout = timeout

        if connection:
            # Callables re-use the connection of the original proxy
            self.__conn = connection
        elif self.__url.scheme == 'https':
            self.__conn = http.client.HTTPSConnection(self.__url.hostname, port, timeout=timeout)
        else:
            self.__conn = http.client.HTTPConnection(self.__url.hostname, port, timeout=timeout)

    def __getattr__(self, name):
        if name.startswith('__') and name.endswith('__'):
            # Python internal stuff
            raise AttributeError
        if self._service_name is not None:
            name = "%s.%s" % (self._service_name, name)
        return AuthServiceProxy(self.__service_url, name, self.timeout,
                                connection=self.__conn, log_bodies=self.log_bodies)

    def _request(self, method, path, postdata):
        '''
        Do a HTTP request, with retry if we get disconnected (e.g. due to a timeout).
        '''
        headers = {'Host': self.__url.hostname,
                   'User-Agent': USER_AGENT,
                   'Content-type': 'application/json'}
        if self.__auth_header is not None:
            headers['Authorization'] = self.__auth_header
        try:
            try:
                self.__conn.request(method, path, postdata, headers)
                return self._get_response()
            except (http.client.BadStatusLine, BrokenPipeError, ConnectionResetError):
                # The server closed a kept-alive connection, try once more
                self.__conn.close()
                self.__conn.request(method, path, postdata, headers)
                return self._get_response()
        except (OSError, http.client.HTTPException):
            # leave the shared connection usable for the next call
            self.__conn.close()
            raise

    def __call__(self, **params):
        AuthServiceProxy.__id_count += 1
        request_id = AuthServiceProxy.__id_count

        if self.log_bodies:
            log.debug("-%s-> %s %s" % (request_id, self._service_name, json.dumps(params)))
        else:
            log.debug("-%s-> %s" % (request_id, self._service_name))
        request = {'jsonrpc': '2.0', 'method': self._service_name, 'id': request_id}
        if params:
            request['params'] = params
        postdata = json.dumps(request)
        response = self._request('POST', self.__url.path or '/', postdata.encode('utf8'))
        if response.get('error') is not None:
            raise JSONRPCException(response['error'])
        elif 'result' not in response:
            raise JSONRPCException({
                'code': -343, 'message': 'missing JSON-RPC result'})
        else:
            return response['result']

    def _get_response(self):
        http_response = self.__conn.getresponse()
        if http_response is None:
            raise JSONRPCException({
                'code': -342, 'message': 'missing HTTP response from server'})

        if not 200 <= http_response.status < 300:
            http_response.read()
            raise JSONRPCException({
                'code': -342, 'message': 'HTTP error \'%i %s\' from server' % (
                    http_response.status, http_response.reason)},
                http_status=http_response.status)

        content_type = http_response.getheader('Content-Type') or ''
        if not content_type.startswith('application/json'):
            http_response.read()
            raise JSONRPCException({
                'code': -342, 'message': 'non-JSON HTTP response with \'%i %s\' from server' % (
                    http_response.status, http_response.reason)},
                http_status=http_response.status)

        responsedata = http_response.read().decode('utf8')
        response = json.loads(responsedata)
        if self.log_bodies:
            log.debug("<-- " + responsedata)
        return response
