import json
import logging

from app.obs import logging as obs_logging


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("fellowship", logging.WARNING, __file__, 1, "matching.announce_failed", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_redacts_sensitive_fields_and_binds_context():
	tokens = obs_logging.bind_context(request_id="rid-1", user_id="u1")
	try:
		line = obs_logging.JSONLogFormatter().format(
			_record(payload={"chat_id": "c1"}, dob="1990-01-01", handle="h1")
		)
	finally:
		obs_logging.reset_context(tokens)
	body = json.loads(line)
	assert body["msg"] == "matching.announce_failed"
	assert body["request_id"] == "rid-1"
	assert body["payload"] == "[redacted]"
	assert body["dob"] == "[redacted]"
	assert body["handle"] == "h1"
	assert obs_logging.current_request_id() is None


def test_long_values_are_truncated():
	line = obs_logging.JSONLogFormatter().format(_record(note="x" * 500))
	assert len(json.loads(line)["note"]) < 300
