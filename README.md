# quantdesk

quantdesk holds the backend building blocks of a spot-trading strategy
service that works on completed one-hour candles:

- **Records** (`quantdesk.models`): `Bar`, `KLine`, `SpotLot` and
  `PortfolioState` (with `total_asset()`), plus the lot type constants
  `LOT_TYPE_DEAD`, `LOT_TYPE_FLOATING` and `LOT_TYPE_COLD_SEALED`.
- **Candle storage** (`quantdesk.store.KLineStore`): a SQLite table of bars
  keyed by symbol, interval and open time. `upsert` overwrites the prices of
  bars already stored, `coverage` reports count, first/last open time and last
  close per symbol, `latest` and `all_bars` return bars oldest first. It is a
  context manager and closes its connection on exit.
- **Market data** (`quantdesk.marketdata.MarketDataService`): fetches
  completed 1h candles from the Bitget spot REST API (`base_url` can be
  pointed elsewhere), paging backwards through history when more bars are
  asked for than one call returns, and upserts them into a `KLineStore`.
  `load_recent` falls back to stored bars when a sync fails; `latest_close`
  returns 0.0 when no bar can be had. Failures raise `MarketDataError`.
- **Data lab** (`quantdesk.datalab.DataLab`): imports candle CSV documents,
  with or without a header, with open times in Unix seconds, Unix
  milliseconds, RFC 3339 or `YYYY-MM-DD HH:MM[:SS]` / `YYYY/MM/DD HH:MM[:SS]`
  text read as UTC. Rows with the same open time keep the last one. It also
  syncs recent bars through a market data service and reports coverage and
  recent bars. Only `BTCUSDT` and `ETHUSDT` are accepted (`allowed_symbols()`,
  `normalize_symbol()`).
- **Strategy registry** (`quantdesk.strategies`): the templates `core-btc-v1`
  and `core-eth-v1` as `Manifest` records; `catalog()`, `lookup(template_id)`
  and `validate_manifest(manifest)`.
- **Lot ledger** (`quantdesk.ledger`): `rebuild_buckets` splits lots into
  dead-stack, floating and cold-sealed amounts; `scaled_buckets` rescales them
  to a reported total; `update_portfolio_from_lots` and
  `update_portfolio_from_balances` recompute a portfolio's buckets and equity.
- **Agent reports** (`quantdesk.balances`): `Balance`, `Execution` and
  `Action`; `extract_balances` reads base-asset and USDT totals for a symbol,
  `adjust_virtual_usdt` moves the USDT balance by a fill's quote value (less a
  USDT fee), and `normalize_execution_status` lower-cases a status, reading a
  blank one as `filled`.
- **Instances** (`quantdesk.instances`): `InstanceStatus`, `CreateRequest`
  (with `validate()` and `from_dict()`), and `check_transition`, which raises
  `TransitionError` for a move the lifecycle does not allow.
- **Trade commands** (`quantdesk.commands`): `OrderIntent`, `TradeCommand`,
  `client_order_id` and `build_commands`, which turns a macro and a micro
  intent into commands for one instance.
- **Cache** (`quantdesk.cache.Cache`): a thin string cache over Redis;
  `Cache.connect("host:port")` pings the server and raises `ConnectionError`
  if it does not answer.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Examples

Importing a CSV file and reading it back:

```python
import io

from quantdesk.datalab import DataLab
from quantdesk.store import KLineStore

csv_text = (
    "open_time,open,high,low,close,volume\n"
    "1715385600000,61000,61200,60500,61100,123.4\n"
    "1715389200000,61100,61500,61050,61400,140.8\n"
)

with KLineStore(":memory:") as store:
    lab = DataLab(store, None)
    result = lab.import_csv("btcusdt", io.StringIO(csv_text))
    print(result.processed_rows)                # 2
    print(lab.coverage("BTCUSDT")[0].count)     # 2
    print(lab.recent("BTCUSDT", 10)[-1].close)  # 61400.0
```

Syncing from the exchange (needs network access):

```python
from quantdesk.marketdata import MarketDataService
from quantdesk.store import KLineStore

with KLineStore("candles.db") as store:
    service = MarketDataService(store)
    stored = service.sync_recent("BTCUSDT", 1200)
    bars = store.latest("BTCUSDT", 24)
```

Reconciling a balance report:

```python
from quantdesk.balances import Balance, extract_balances
from quantdesk.ledger import update_portfolio_from_balances
from quantdesk.models import PortfolioState

portfolio = PortfolioState(usdt_balance=1000)
base_qty, usdt_qty = extract_balances(
    "BTCUSDT", [Balance("USDT", available=250), Balance("BTC", available=1.5)]
)
update_portfolio_from_balances(portfolio, [], base_qty, usdt_qty, price=60000)
print(portfolio.usdt_balance, portfolio.float_asset)  # 250.0 1.5
```

Instance status rules and commands:

```python
from quantdesk.commands import OrderIntent, build_commands
from quantdesk.instances import InstanceStatus, check_transition

check_transition("stopped", InstanceStatus.RUNNING)  # allowed
check_transition("DELETED", InstanceStatus.RUNNING)  # raises TransitionError

intent = OrderIntent(action="BUY", engine="MACRO", symbol="BTCUSDT",
                     lot_type="DEAD_STACK", amount_usdt=50.0)
commands = build_commands(7, intent, None, 1715385600000)
print(commands[0].client_order_id)  # inst7-macro-1715385600000
```

## What the package does not do

- It does not run strategies, backtests or a parameter search: there is no
  strategy step, no fitness scoring and no genetic evolution here, only the
  template manifests.
- It has no web server, no agent WebSocket connection and no command-line
  program. `build_commands` produces commands but nothing here sends them.
- Storage covers candles only. Users, instances, lots, portfolios, trades and
  audit logs are plain records or dataclasses, not persisted tables.