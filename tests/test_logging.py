import logging

from logging_setup import SecretFilter, get_logger


def _record(msg, *args):
    return logging.LogRecord("EdifyPub.test", logging.INFO, __file__, 1, msg, args, None)


def test_gateway_keys_and_bearer_tokens_are_masked():
    record = _record("calling with sk_live_abc123 and FLWSECK_TEST-deadbeef-X, Authorization: Bearer eyJ.abc")
    SecretFilter().filter(record)

    assert "sk_live_abc123" not in record.msg
    assert "FLWSECK_TEST-deadbeef" not in record.msg
    assert "eyJ.abc" not in record.msg


def test_args_and_key_value_pairs_are_masked():
    record = _record("payload %s", "secret_key=hunter2")
    SecretFilter().filter(record)

    assert record.getMessage() == "payload [REDACTED]"


def test_child_loggers_share_the_app_logger():
    assert get_logger("services.payments").name == "EdifyPub.services.payments"
