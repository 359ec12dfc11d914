"""
Tests for the order email error taxonomy.
"""

import pytest

from activation_mailer.services.order_email_errors import (
    ERROR_CODES,
    ERROR_HTTP_STATUS,
    ErrorKind,
    OrderEmailError,
    StageOutcome,
)


class TestErrorTables:

    def test_status_table_covers_every_kind(self):
        assert set(ERROR_HTTP_STATUS) == set(ErrorKind)

    def test_code_table_covers_every_kind(self):
        assert set(ERROR_CODES) == set(ErrorKind)

    @pytest.mark.parametrize("kind,status", [
        (ErrorKind.VALIDATION, 400),
        (ErrorKind.AUTHENTICATION, 403),
        (ErrorKind.NOT_FOUND, 404),
        (ErrorKind.DUPLICATE, 409),
        (ErrorKind.CONFIGURATION, 500),
        (ErrorKind.INTERNAL, 500),
        (ErrorKind.MAILER, 502),
        (ErrorKind.DOWNSTREAM_UNAVAILABLE, 502),
    ])
    def test_http_status(self, kind, status):
        assert OrderEmailError(kind, "x").http_status == status


class TestOrderEmailError:

    def test_to_dict_includes_field_when_set(self):
        error = OrderEmailError.validation("Missing orderId in request", field="orderId")
        assert error.to_dict() == {
            "code": "validation_error",
            "message": "Missing orderId in request",
            "field": "orderId",
        }

    def test_to_dict_omits_empty_field(self):
        assert "field" not in OrderEmailError.duplicate("already sent").to_dict()

    def test_mailer_keeps_provider_details(self):
        error = OrderEmailError.mailer("rejected", status_code=401, details={"code": "unauthorized"})
        assert error.kind is ErrorKind.MAILER
        assert error.status_code == 401
        assert error.details == {"code": "unauthorized"}
        assert str(error) == "rejected"


class TestStageOutcome:

    def test_success(self):
        outcome = StageOutcome.success("metafield")
        assert outcome.ok and not outcome.skipped

    def test_skip_is_not_ok(self):
        outcome = StageOutcome.skip("metafield", "no_short_urls")
        assert not outcome.ok
        assert outcome.to_dict() == {
            "stage": "metafield",
            "ok": False,
            "skipped": True,
            "error": "no_short_urls",
        }
