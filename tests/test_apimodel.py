import math
from datetime import datetime, timedelta, timezone

import pytest

from promclient.apimodel import (
    ActiveTarget,
    Alert,
    AlertingRule,
    AlertManager,
    AlertState,
    APIError,
    DroppedTarget,
    ErrorType,
    HealthStatus,
    RecordingRule,
    Sample,
    SampleStream,
    Scalar,
    decode_alert_managers_result,
    decode_query_result,
    decode_rule,
    decode_rule_group,
    decode_rules_result,
    decode_targets_result,
    parse_time,
)


def test_api_error_message_and_detail():
    err = APIError(ErrorType.SERVER, "server error: 500", "some body")
    assert str(err) == "server_error: server error: 500"
    assert err.detail == "some body"
    assert err.type is ErrorType.SERVER


def test_api_error_from_raw_type_string():
    err = APIError("client_error", "client error: 404")
    assert str(err) == "client_error: client error: 404"
    assert err.type is ErrorType.CLIENT


def test_parse_time_utc():
    assert parse_time("2017-12-10T21:12:24Z") == datetime(
        2017, 12, 10, 21, 12, 24, tzinfo=timezone.utc
    )


def test_parse_time_offset_is_same_instant():
    assert parse_time("2017-12-10T23:12:24+02:00") == parse_time("2017-12-10T21:12:24Z")


def test_parse_time_round_trip_and_fraction():
    moment = datetime(2020, 1, 2, 3, 4, 5, 123456, tzinfo=timezone.utc)
    assert parse_time(moment.isoformat()) == moment
    assert parse_time("2020-01-02T03:04:05.123456789Z").microsecond == 123456
    assert parse_time("2020-01-02T03:04:05-01:30").utcoffset() == -timedelta(hours=1, minutes=30)


@pytest.mark.parametrize("bad", ["yesterday", "2020-01-02", "2020-01-02T03:04:05", 12])
def test_parse_time_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_time(bad)


def test_decode_scalar():
    result = decode_query_result({"resultType": "scalar", "result": [1700000000, "2"]})
    assert result == Scalar(2.0, 1700000000 * 1000)


def test_decode_vector_and_matrix():
    vector = decode_query_result(
        {"resultType": "vector", "result": [{"metric": {"job": "node"}, "value": [10, "+Inf"]}]}
    )
    assert vector == [Sample({"job": "node"}, math.inf, 10000)]
    matrix = decode_query_result(
        {
            "resultType": "matrix",
            "result": [{"metric": {"__name__": "up"}, "values": [[1, "1"], [2, "0"]]}],
        }
    )
    assert matrix == [SampleStream({"__name__": "up"}, ((1000, 1.0), (2000, 0.0)))]


def test_decode_query_result_unexpected_type():
    with pytest.raises(ValueError, match='unexpected value type "string"'):
        decode_query_result({"resultType": "string", "result": [1, "x"]})


def test_decode_query_result_requires_quoted_value():
    with pytest.raises(ValueError):
        decode_query_result({"resultType": "scalar", "result": [1, 2]})


ACTIVE_AT = "2017-12-10T21:12:24.5Z"

RULES = {
    "groups": [
        {
            "file": "/rules.yaml",
            "interval": 60,
            "name": "example",
            "rules": [
                {
                    "alerts": [
                        {
                            "activeAt": ACTIVE_AT,
                            "annotations": {"summary": "High request latency"},
                            "labels": {"alertname": "HighRequestLatency", "severity": "page"},
                            "state": "firing",
                            "value": 1,
                        }
                    ],
                    "annotations": {"summary": "High request latency"},
                    "duration": 600,
                    "health": "ok",
                    "labels": {"severity": "page"},
                    "name": "HighRequestLatency",
                    "query": 'job:request_latency_seconds:mean5m{job="myjob"} > 0.5',
                    "type": "alerting",
                },
                {
                    "health": "ok",
                    "name": "job:http_inprogress_requests:sum",
                    "query": "sum(http_inprogress_requests) by (job)",
                    "type": "recording",
                },
            ],
        }
    ]
}


def test_decode_rules_result():
    result = decode_rules_result(RULES)
    assert len(result.groups) == 1
    group = result.groups[0]
    assert (group.name, group.file, group.interval) == ("example", "/rules.yaml", 60.0)
    assert group.rules == (
        AlertingRule(
            name="HighRequestLatency",
            query='job:request_latency_seconds:mean5m{job="myjob"} > 0.5',
            duration=600.0,
            labels={"severity": "page"},
            annotations={"summary": "High request latency"},
            alerts=(
                Alert(
                    active_at=parse_time(ACTIVE_AT),
                    annotations={"summary": "High request latency"},
                    labels={"alertname": "HighRequestLatency", "severity": "page"},
                    state=AlertState.FIRING,
                    value=1.0,
                ),
            ),
            health="ok",
            last_error="",
        ),
        RecordingRule(
            name="job:http_inprogress_requests:sum",
            query="sum(http_inprogress_requests) by (job)",
            health="ok",
        ),
    )


@pytest.mark.parametrize("rule", [{"name": "x"}, {"name": "x", "type": "bogus"}])
def test_decode_rule_rejects_untyped_rules(rule):
    with pytest.raises(ValueError, match="failed to decode JSON into an alerting or recording rule"):
        decode_rule(rule)


def test_decode_rule_group_propagates_rule_errors():
    with pytest.raises(ValueError):
        decode_rule_group({"name": "g", "rules": [{"name": "x"}]})


def test_decode_alert_managers_result():
    result = decode_alert_managers_result(
        {
            "activeAlertManagers": [{"url": "http://127.0.0.1:9091/api/v1/alerts"}],
            "droppedAlertManagers": [{"url": "http://127.0.0.1:9092/api/v1/alerts"}],
        }
    )
    assert result.active == (AlertManager("http://127.0.0.1:9091/api/v1/alerts"),)
    assert result.dropped == (AlertManager("http://127.0.0.1:9092/api/v1/alerts"),)


def test_decode_targets_result():
    scrape = "2018-01-01T00:00:00Z"
    result = decode_targets_result(
        {
            "activeTargets": [
                {
                    "discoveredLabels": {
                        "__address__": "127.0.0.1:9090",
                        "__metrics_path__": "/metrics",
                        "__scheme__": "http",
                        "job": "prometheus",
                    },
                    "labels": {"instance": "127.0.0.1:9090", "job": "prometheus"},
                    "scrapeUrl": "http://127.0.0.1:9090",
                    "lastError": "error while scraping target",
                    "lastScrape": scrape,
                    "health": "up",
                }
            ],
            "droppedTargets": [
                {
                    "discoveredLabels": {
                        "__address__": "127.0.0.1:9100",
                        "__metrics_path__": "/metrics",
                        "__scheme__": "http",
                        "job": "node",
                    }
                }
            ],
        }
    )
    assert result.active == (
        ActiveTarget(
            discovered_labels={
                "__address__": "127.0.0.1:9090",
                "__metrics_path__": "/metrics",
                "__scheme__": "http",
                "job": "prometheus",
            },
            labels={"instance": "127.0.0.1:9090", "job": "prometheus"},
            scrape_url="http://127.0.0.1:9090",
            last_error="error while scraping target",
            last_scrape=parse_time(scrape),
            health=HealthStatus.GOOD,
        ),
    )
    assert result.dropped == (
        DroppedTarget(
            {
                "__address__": "127.0.0.1:9100",
                "__metrics_path__": "/metrics",
                "__scheme__": "http",
                "job": "node",
            }
        ),
    )


def test_decode_targets_rejects_non_string_label():
    with pytest.raises(ValueError):
        decode_targets_result({"activeTargets": [{"labels": {"job": 1}}]})


def test_empty_results_decode_to_empty_collections():
    assert decode_targets_result({}).active == ()
    assert decode_alert_managers_result({"activeAlertManagers": None}).active == ()
    assert decode_rules_result({}).groups == ()