"""Tests for log redaction and request ID context."""

import logging

from passserver.logging_utils import (
    clear_request_id,
    get_request_id,
    log_error,
    log_info,
    redact_secrets,
    set_request_id,
)
from passserver.store.armor import armor


class TestRedaction:
    """Tests for redact_secrets()."""

    def test_redacts_armored_block(self):
        block = armor(b"\x85\x01\x0c\x03secret")
        text = f"index={block} done"

        redacted = redact_secrets(text)

        assert "BEGIN PGP MESSAGE" not in redacted
        assert "***ARMORED***" in redacted
        assert redacted.endswith(" done")

    def test_redacts_multiple_blocks(self):
        text = armor(b"one") + " and " + armor(b"two")
        assert redact_secrets(text).count("***ARMORED***") == 2

    def test_redacts_authorization_header(self):
        redacted = redact_secrets("Authorization: Bearer abc123")
        assert "abc123" not in redacted
        assert "Authorization: ***REDACTED***" in redacted

    def test_redacts_scheme_and_credential(self):
        redacted = redact_secrets("authorization: basic dXNlcjpwYXNz, next=1")

        assert "dXNlcjpwYXNz" not in redacted
        assert redacted == "authorization: ***REDACTED***, next=1"

    def test_redacts_bare_authorization_token(self):
        redacted = redact_secrets("Authorization: abc123 trailing")
        assert redacted == "Authorization: ***REDACTED*** trailing"

    def test_plain_text_unchanged(self):
        assert redact_secrets("store=/srv/pass secrets=3") == "store=/srv/pass secrets=3"

    def test_none_input(self):
        assert redact_secrets(None) == ""

    def test_non_string_input(self):
        assert redact_secrets(12345) == "12345"


class TestRequestIDContext:
    """Tests for request ID context management."""

    def teardown_method(self):
        clear_request_id()

    def test_set_and_get(self):
        set_request_id("req-1")
        assert get_request_id() == "req-1"

    def test_generated_when_missing(self):
        request_id = set_request_id()
        assert len(request_id) == 36
        assert get_request_id() == request_id

    def test_clear(self):
        set_request_id("req-2")
        clear_request_id()
        assert get_request_id() is None


class TestStructuredLogging:
    """Tests for the log_* helpers."""

    def teardown_method(self):
        clear_request_id()

    def test_includes_request_id_and_fields(self, caplog):
        logger = logging.getLogger("passserver.test")
        set_request_id("req-42")

        with caplog.at_level(logging.INFO, logger="passserver.test"):
            log_info(logger, "Rebuilt secret cache", secrets=3)

        assert "Rebuilt secret cache | request_id=req-42 | secrets=3" in caplog.text

    def test_redacts_field_values(self, caplog):
        logger = logging.getLogger("passserver.test")

        with caplog.at_level(logging.ERROR, logger="passserver.test"):
            log_error(logger, "Leaked", payload=armor(b"secret"))

        assert "BEGIN PGP MESSAGE" not in caplog.text
        assert "payload=***ARMORED***" in caplog.text

    def test_respects_level(self, caplog):
        logger = logging.getLogger("passserver.test")

        with caplog.at_level(logging.ERROR, logger="passserver.test"):
            log_info(logger, "quiet")

        assert "quiet" not in caplog.text
