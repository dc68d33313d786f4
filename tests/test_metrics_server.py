from __future__ import annotations

import gzip
import http.client
import logging
import time

import pytest
from prometheus_client import CollectorRegistry, Gauge

from scrapekit.errors import AlreadyRunningError
from scrapekit.metrics import CollectedMetric, LabelSet
from scrapekit.server import GZIP_MIN_BYTES, MetricsServer, _accepts_gzip

pytestmark = pytest.mark.network


@pytest.fixture()
def server():
    srv = MetricsServer(port=0, host='127.0.0.1')
    srv.run()
    yield srv
    srv.shutdown()


def _get(srv, path, headers=None, method='GET'):
    conn = http.client.HTTPConnection('127.0.0.1', srv.port, timeout=5)
    try:
        conn.request(method, path, headers=headers or {})
        resp = conn.getresponse()
        return resp.status, dict(resp.getheaders()), resp.read()
    finally:
        conn.close()


def _wait_for(fn, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if fn():
            return True
        time.sleep(0.01)
    return fn()


def test_creates_a_registry():
    assert isinstance(MetricsServer().registry, CollectorRegistry)


def test_uses_given_registry():
    reg = CollectorRegistry()
    assert MetricsServer(registry=reg).registry is reg


def test_serves_metrics(server):
    Gauge('answer', 'The answer', registry=server.registry).set(42)
    status, headers, body = _get(server, '/metrics')
    assert status == 200
    assert headers['Content-Type'].startswith('text/plain')
    assert b'answer 42.0' in body


def test_serves_collected_metrics(server):
    CollectedMetric('queue_depth', 'Depth', labels=['queue'], registry=server.registry,
                    collector=lambda: {LabelSet(queue='orders'): 7})
    _, _, body = _get(server, '/metrics')
    assert b'queue_depth{queue="orders"} 7.0' in body


def test_redirects_everything_else(server):
    status, headers, body = _get(server, '/')
    assert status == 301
    assert headers['Location'] == '/metrics'
    assert body == b'Try /metrics'
    status, _, _ = _get(server, '/some/where?x=1')
    assert status == 301


def test_records_stats_for_requests(server):
    for _ in range(10):
        _get(server, '/metrics')
    labels = {'method': 'GET', 'path': '/metrics'}
    assert server.registry.get_sample_value('scrapekit_server_requests_total', labels) == 10.0
    assert _wait_for(lambda: server.registry.get_sample_value(
        'scrapekit_server_request_duration_seconds_count', {**labels, 'code': '200'}) == 10.0)
    assert _wait_for(lambda: server.registry.get_sample_value('scrapekit_server_in_progress_count', labels) == 0.0)


def test_redirects_are_recorded_under_other(server):
    _get(server, '/nope')
    labels = {'method': 'GET', 'path': 'other'}
    assert server.registry.get_sample_value('scrapekit_server_requests_total', labels) == 1.0
    assert _wait_for(lambda: server.registry.get_sample_value(
        'scrapekit_server_request_duration_seconds_count', {**labels, 'code': '301'}) == 1.0)


def test_large_bodies_are_gzipped(server):
    g = Gauge('padding', 'Makes the body big', ['n'], registry=server.registry)
    for i in range(50):
        g.labels(n=str(i)).set(i)
    status, headers, body = _get(server, '/metrics', {'Accept-Encoding': 'gzip'})
    assert status == 200
    assert headers.get('Content-Encoding') == 'gzip'
    text = gzip.decompress(body)
    assert len(text) > GZIP_MIN_BYTES
    assert b'padding{n="49"} 49.0' in text


def test_no_gzip_without_accept_encoding(server):
    _, headers, body = _get(server, '/metrics')
    assert 'Content-Encoding' not in headers
    assert body.startswith(b'#')


def test_run_twice_raises(server):
    with pytest.raises(AlreadyRunningError):
        server.run()


def test_shutdown_is_idempotent():
    srv = MetricsServer(port=0, host='127.0.0.1')
    srv.shutdown()
    srv.run()
    assert srv.running
    srv.shutdown()
    srv.shutdown()
    assert not srv.running


def test_access_log_goes_to_logger(caplog):
    lg = logging.getLogger('scrapekit.tests.server')
    srv = MetricsServer(port=0, host='127.0.0.1', logger=lg)
    with caplog.at_level(logging.DEBUG, logger=lg.name):
        srv.run()
        try:
            _get(srv, '/metrics')
            assert _wait_for(lambda: any('GET /metrics' in r.getMessage() for r in caplog.records))
        finally:
            srv.shutdown()
    access = [r for r in caplog.records if 'GET /metrics' in r.getMessage()]
    assert access[0].levelno == logging.DEBUG
    assert access[0].component == 'scrapekit.server'


def test_head_gets_headers_without_body(server):
    Gauge('answer', 'The answer', registry=server.registry).set(42)
    status, headers, body = _get(server, '/metrics', method='HEAD')
    assert status == 200
    assert headers['Content-Type'].startswith('text/plain')
    assert int(headers['Content-Length']) > 0
    assert body == b''
    labels = {'method': 'HEAD', 'path': '/metrics'}
    assert server.registry.get_sample_value('scrapekit_server_requests_total', labels) == 1.0
    assert _wait_for(lambda: server.registry.get_sample_value(
        'scrapekit_server_request_duration_seconds_count', {**labels, 'code': '200'}) == 1.0)


def test_other_methods_are_refused_and_recorded(server):
    status, headers, body = _get(server, '/metrics', method='POST')
    assert status == 405
    assert headers['Allow'] == 'GET, HEAD'
    assert body == b'Method Not Allowed'
    labels = {'method': 'POST', 'path': '/metrics'}
    assert server.registry.get_sample_value('scrapekit_server_requests_total', labels) == 1.0
    assert _wait_for(lambda: server.registry.get_sample_value(
        'scrapekit_server_request_duration_seconds_count', {**labels, 'code': '405'}) == 1.0)


@pytest.mark.parametrize("header,expected", [
    (None, False),
    ('', False),
    ('gzip', True),
    ('deflate, gzip;q=0.8', True),
    ('gzip;q=0', False),
    ('identity', False),
    ('*', True),
])
def test_accepts_gzip(header, expected):
    assert _accepts_gzip(header) is expected
