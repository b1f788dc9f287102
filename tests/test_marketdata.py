import json
import threading
import time
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from quantdesk.marketdata import MarketDataError, MarketDataService
from quantdesk.models import Bar, KLine
from quantdesk.store import KLineStore

HOUR_MS = 3_600_000


@contextmanager
def serve(responder):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            parsed = urlsplit(self.path)
            query = {key: values[0] for key, values in parse_qs(parsed.query).items()}
            status, payload = responder(parsed.path, query)
            body = json.dumps(payload).encode("utf-8")
            self.send_response(status)
            self.send_header("Content-Type", "application/json")
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


def ok(data):
    return 200, {"code": "00000", "msg": "success", "data": data}


def build_candles(start, end):
    rows = []
    for i in range(start, end + 1):
        price = str(100 + i)
        rows.append([str(i * 1000), price, price, price, price, "10"])
    return rows


def candle_row(open_time):
    price = f"{1000 + float((open_time // HOUR_MS) % 1000):.2f}"
    return [str(open_time), price, price, price, price, "10"]


def build_ascending(start, end):
    return [candle_row(t) for t in range(start, end + 1, HOUR_MS)]


def build_descending(start, end):
    return [candle_row(t) for t in range(end, start - 1, -HOUR_MS)]


def current_hour_ms():
    return int(time.time() * 1000) // HOUR_MS * HOUR_MS


@pytest.fixture
def store():
    with KLineStore() as kline_store:
        yield kline_store


def test_sync_recent_batches_bitget_requests(store):
    limits = []
    end_times = []

    def responder(path, query):
        if path not in ("/api/v2/spot/market/candles", "/api/v2/spot/market/history-candles"):
            return 404, {"code": "404", "msg": "not found"}
        limits.append(int(query["limit"]))
        end_time = int(query["endTime"])
        end_times.append(end_time)
        if path == "/api/v2/spot/market/candles":
            return ok(build_candles(4, 5))
        if end_time > 3000:
            return ok(build_candles(2, 3))
        if end_time > 0:
            return ok(build_candles(1, 1))
        return ok(None)

    with serve(responder) as url:
        service = MarketDataService(store, base_url=url)
        service.recent_batch_limit = 3
        service.history_batch_limit = 2
        fetched = service.sync_recent("BTCUSDT", 5)

    assert fetched == 5
    assert limits == [3, 2, 1]
    assert end_times[1] < end_times[0]
    assert end_times[2] < end_times[1]

    rows = store.all_bars("BTCUSDT")
    assert len(rows) == 5
    assert rows[0].open_time == 1000
    assert rows[-1].open_time == 5000


def test_sync_recent_persists_large_result_set(store):
    requested = 1200
    now = current_hour_ms()
    history_requests = []

    def responder(path, query):
        if path == "/api/v2/spot/market/candles":
            return ok(build_descending(now - 1000 * HOUR_MS, now - 1 * HOUR_MS))
        if path == "/api/v2/spot/market/history-candles":
            history_requests.append(query)
            if len(history_requests) == 1:
                return ok(build_ascending(now - 1200 * HOUR_MS, now - 1001 * HOUR_MS))
            return ok([])
        return 404, {"code": "404", "msg": "not found"}

    with serve(responder) as url:
        service = MarketDataService(store, base_url=url)
        fetched = service.sync_recent("ETHUSDT", requested)

    assert fetched == requested
    coverage = store.coverage("ETHUSDT")
    assert len(coverage) == 1
    assert coverage[0].count == requested


def test_fetch_candles_drops_current_hour_and_short_rows(store):
    now = current_hour_ms()
    data = [candle_row(now), ["42"], candle_row(now - HOUR_MS), candle_row(now - 2 * HOUR_MS)]

    with serve(lambda path, query: ok(data)) as url:
        bars = MarketDataService(store, base_url=url).fetch_candles("BTCUSDT", 10)

    assert [bar.open_time for bar in bars] == [now - 2 * HOUR_MS, now - HOUR_MS]


def test_error_code_raises(store):
    def responder(path, query):
        return 200, {"code": "40001", "msg": "bad request", "data": []}

    with serve(responder) as url:
        service = MarketDataService(store, base_url=url)
        with pytest.raises(MarketDataError, match="40001"):
            service.fetch_candles("BTCUSDT", 5)


def test_http_error_status_raises(store):
    with serve(lambda path, query: (500, {"code": "oops"})) as url:
        service = MarketDataService(store, base_url=url)
        with pytest.raises(MarketDataError, match="status 500"):
            service.fetch_candles("BTCUSDT", 5)


def test_sync_recent_without_candles_raises(store):
    with serve(lambda path, query: ok([])) as url:
        service = MarketDataService(store, base_url=url)
        with pytest.raises(MarketDataError, match="no completed candles"):
            service.sync_recent("BTCUSDT", 5)
    assert store.all_bars("BTCUSDT") == []


def test_load_recent_falls_back_to_stored_bars(store):
    stored = [Bar(1000, 1.0, 2.0, 0.5, 1.5, 3.0), Bar(2000, 1.5, 2.5, 1.0, 2.0, 4.0)]
    store.upsert(KLine.from_bar("BTCUSDT", bar) for bar in stored)

    with serve(lambda path, query: (503, {"code": "down"})) as url:
        bars = MarketDataService(store, base_url=url).load_recent("BTCUSDT", 10)

    assert bars == stored


def test_load_recent_raises_sync_error_when_store_empty(store):
    with serve(lambda path, query: (503, {"code": "down"})) as url:
        service = MarketDataService(store, base_url=url)
        with pytest.raises(MarketDataError, match="status 503"):
            service.load_recent("BTCUSDT", 10)


def test_latest_close(store):
    with serve(lambda path, query: ok(build_candles(4, 5))) as url:
        assert MarketDataService(store, base_url=url).latest_close("BTCUSDT") == 105.0


def test_latest_close_is_zero_when_unavailable(store):
    with serve(lambda path, query: (500, {"code": "x"})) as url:
        assert MarketDataService(store, base_url=url).latest_close("BTCUSDT") == 0.0