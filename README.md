# promclient

Counters and gauges in the Prometheus data model, a bridge that pushes
samples to a Graphite server, and a client for the Prometheus HTTP API v1.
It has no dependencies beyond the standard library.

## Install

    pip install promclient

To run the tests:

    pip install "promclient[test]"
    pytest

## Metrics

```python
from promclient.counter import Counter, CounterOpts
from promclient.gauge import Gauge, GaugeOpts, GaugeFunc

requests = Counter(CounterOpts(name="requests_total", help="Requests served."))
requests.inc()
requests.add(2.5)
try:
    requests.add(-1)
except ValueError as exc:
    print(exc)  # counter cannot decrease in value

temperature = Gauge(GaugeOpts(name="cpu_temperature_celsius", help="CPU temperature."))
temperature.set(65.3)
temperature.dec()
temperature.set_to_current_time()

uptime = GaugeFunc(GaugeOpts(name="uptime_seconds", help="Uptime."), lambda: 42.0)
print(uptime.write())  # gauge:<value:42 >
```

`CounterOpts` and `GaugeOpts` take `name`, `help`, `namespace`, `subsystem`
and `const_labels`; the fully qualified name joins the non-empty parts with
underscores. `CounterFunc` is the counter counterpart of `GaugeFunc`.

Every metric's `write()` returns a `MetricData` (value type, value and sorted
constant label pairs). Every metric carries a `Desc` from `promclient.desc`,
holding the name, help, constant and variable labels. An invalid metric or
label name, a duplicate label name or a label value that is not valid UTF-8
does not raise at construction; it is kept in `Desc.err`.
`is_valid_metric_name` and `is_valid_label_name` check names, and
`new_invalid_desc` makes a descriptor that only carries an error.

`promclient.collector` defines the `Metric` and `Collector` base classes,
`SelfCollector` (a metric that describes and collects itself) and
`describe_by_collect`, which yields the descriptors of whatever a collector
collects right now.

## Graphite

```python
import threading
from promclient.graphite import Bridge, ErrorHandling, Sample

def gather():
    return [Sample({"__name__": "requests_total", "code": "200"}, 7.0)]

bridge = Bridge("localhost:2003", gather, prefix="myapp",
                error_handling=ErrorHandling.ABORT_ON_ERROR)
bridge.push()  # myapp.requests_total.code.200 7 <unix seconds>

stop = threading.Event()
# bridge.run(stop) pushes every `interval` seconds (default 15) until stop.set()
```

The gatherer is any callable returning `Sample`s. Each sample becomes one
plaintext line `prefix.name.label.value value timestamp`, with labels sorted
and sanitised by `sanitize` (spaces become dots, other disallowed characters
underscores, runs of underscores collapse). `format_metric` and
`write_metrics` expose the formatting on their own. If gathering raises or
returns nothing, `ABORT_ON_ERROR` stops the push (re-raising the error if
there was one); `CONTINUE_ON_ERROR` logs a warning to the optional logger and
pushes what there is. `run` logs push failures and keeps going.

## HTTP API v1

```python
from datetime import datetime, timedelta, timezone
from promclient.apiclient import Client
from promclient.apiv1 import API, Range

api = API(Client("http://localhost:9090"))
now = datetime.now(timezone.utc)
value = api.query("up", now)
matrix = api.query_range("up", Range(now - timedelta(hours=1), now, timedelta(minutes=1)))
print(api.label_values("job"))
print(api.targets().active)
```

`API` also offers `alert_managers`, `config`, `flags`, `series`, `rules`,
`snapshot`, `delete_series` and `clean_tombstones`. Query results are a
`Scalar`, a list of `Sample` or a list of `SampleStream` from
`promclient.apimodel`, which also holds the result dataclasses and the
`decode_*` functions for the server's JSON.

`Client` uses `urllib` (proxies from the environment, 30 s default timeout);
pass another `transport` callable `(method, url, timeout) -> Response` to
replace it. Errors reported by the server, or responses that cannot be
understood, raise `promclient.apimodel.APIError`, whose `type` is an
`ErrorType` and whose `detail` holds the response body where the server sent
an unexpected status code.

## What it does not do

There is no registry, no labelled metric vectors, no histograms or
summaries, and no HTTP endpoint that serves metrics for scraping; samples for
the Graphite bridge come from the gatherer you supply. There is no command
line program.