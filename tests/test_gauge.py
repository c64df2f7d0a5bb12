import random
import threading
import time

import pytest

from promclient.collector import ValueType
from promclient.gauge import Gauge, GaugeFunc, GaugeOpts


def _gauge():
    return Gauge(GaugeOpts(name="test_gauge", help="no help can be found here"))


def test_gauge_operations():
    g = _gauge()
    g.set(10)
    assert g.write().value == 10.0
    g.inc()
    assert g.write().value == 11.0
    g.dec()
    g.dec()
    assert g.write().value == 9.0
    g.add(-4.5)
    assert g.write().value == 4.5
    g.sub(-0.5)
    assert g.write().value == 5.0
    g.sub(2)
    assert g.write().value == 3.0
    assert g.write().value_type is ValueType.GAUGE


@pytest.mark.parametrize("n", [0, 17, 1234, 9999])
def test_gauge_concurrency(n):
    mutations = n % 1000
    conc_level = n % 15 + 1
    g = _gauge()
    batches = [[random.random() - 0.5 for _ in range(mutations)] for _ in range(conc_level)]
    start = threading.Event()

    def work(vals):
        start.wait()
        for v in vals:
            g.add(v)

    threads = [threading.Thread(target=work, args=(b,)) for b in batches]
    for t in threads:
        t.start()
    start.set()
    for t in threads:
        t.join()
    expected = sum(sum(b) for b in batches)
    assert abs(expected - g.write().value) <= 0.000001


def test_gauge_func():
    gf = GaugeFunc(
        GaugeOpts(name="test_name", help="test help", const_labels={"a": "1", "b": "2"}),
        lambda: 3.1415,
    )
    assert (
        str(gf.desc())
        == 'Desc{fqName: "test_name", help: "test help", constLabels: {a="1",b="2"}, variableLabels: []}'
    )
    assert (
        str(gf.write())
        == 'label:<name:"a" value:"1" > label:<name:"b" value:"2" > gauge:<value:3.1415 > '
    )


def test_gauge_set_current_time():
    g = Gauge(GaugeOpts(name="test_name", help="test help"))
    g.set_to_current_time()
    delta = time.time() - g.write().value
    assert abs(delta) <= 5


def test_gauge_collects_itself():
    g = _gauge()
    assert list(g.collect()) == [g]
    assert list(g.describe()) == [g.desc()]
    assert g.desc().fq_name == "test_gauge"


def test_gauge_string():
    g = Gauge(GaugeOpts(name="temp", const_labels={"room": "kitchen"}))
    g.set(21.5)
    assert str(g.write()) == 'label:<name:"room" value:"kitchen" > gauge:<value:21.5 > '