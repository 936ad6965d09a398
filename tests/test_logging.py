import json
import logging

from jobstr.utils.logging import JSONFormatter, SecretMask

NSEC = "nsec1" + "q" * 58


def _record(msg, *args):
    return logging.LogRecord("jobstr", logging.INFO, __file__, 1, msg, args, None)


def test_nsec_is_masked():
    record = _record("key=%s", NSEC)
    SecretMask().filter(record)
    assert NSEC not in record.getMessage()
    assert "nsec1***" in record.getMessage()


def test_json_formatter():
    record = _record("relay %s down", "wss://a.test")
    record.relay = "wss://a.test"
    data = json.loads(JSONFormatter().format(record))
    assert data["msg"] == "relay wss://a.test down"
    assert data["relay"] == "wss://a.test"
    assert data["lvl"] == "INFO"
