"""Unit tests for the exception hierarchy and the exception handler utilities."""

import json
import logging

import pytest

from squadron_league.adapters.common.exception_handler import (
    format_exception_json,
    get_error_code,
    get_http_status_code,
    is_client_error,
    log_exception,
)
from squadron_league.core.domain import exceptions
from squadron_league.core.domain.exceptions import (
    AlreadyFinalizedError,
    AuthorizationError,
    CapacityExceededError,
    ConflictError,
    DataSourceError,
    ErrorFamily,
    EventNotFoundError,
    IncidentNotFoundError,
    InvalidKartNumberError,
    InvitationExpiredError,
    KartUnavailableError,
    LeagueError,
    NotFoundError,
    RaceResultUnavailableError,
    RaceSessionNotFoundError,
    StaleWriteError,
    StateError,
    ValidationError,
)

pytestmark = pytest.mark.unit

ALL_ERRORS = [getattr(exceptions, name) for name in exceptions.__all__ if name.endswith("Error")]


class TestExceptionHierarchy:
    """Tests for the exception class hierarchy."""

    def test_league_error_is_base(self):
        for error_class in ALL_ERRORS:
            assert issubclass(error_class, LeagueError)

    def test_families(self):
        assert issubclass(KartUnavailableError, ConflictError)
        assert issubclass(CapacityExceededError, ConflictError)
        assert issubclass(AlreadyFinalizedError, ConflictError)
        assert issubclass(StaleWriteError, ConflictError)
        assert issubclass(InvitationExpiredError, StateError)
        assert issubclass(InvalidKartNumberError, ValidationError)
        assert issubclass(RaceSessionNotFoundError, NotFoundError)
        assert issubclass(RaceResultUnavailableError, DataSourceError)

    def test_error_codes_are_unique(self):
        codes = {error_class.error_code for error_class in ALL_ERRORS}

        assert len(codes) == len(ALL_ERRORS)

    def test_code_family_matches_base_class(self):
        bases = {
            ValidationError: ErrorFamily.VALIDATION,
            AuthorizationError: ErrorFamily.AUTHORIZATION,
            NotFoundError: ErrorFamily.NOT_FOUND,
            ConflictError: ErrorFamily.CONFLICT,
            StateError: ErrorFamily.STATE,
            DataSourceError: ErrorFamily.DATA_SOURCE,
        }
        for error_class in ALL_ERRORS:
            expected = next(
                (family for base, family in bases.items() if issubclass(error_class, base)),
                ErrorFamily.INTERNAL,
            )
            assert error_class("x").family is expected, error_class.__name__

    def test_retryable_families(self):
        assert StaleWriteError("lost").family.retryable
        assert RaceResultUnavailableError("down").family.retryable
        assert not StateError("wrong state").family.retryable
        assert not EventNotFoundError("gone").family.retryable


class TestExceptionCreation:
    """Tests for creating and using exceptions."""

    def test_basic_exception(self):
        exc = LeagueError("Something broke")

        assert str(exc) == "Something broke"
        assert exc.message == "Something broke"
        assert exc.error_code == "LG_ERR_001"
        assert exc.extra_context == {}

    def test_context_and_cause(self):
        original = OSError("disk full")
        exc = StaleWriteError("Write lost", cause=original, context={"pilot_id": "a1"})

        assert exc.cause is original
        assert exc.extra_context["pilot_id"] == "a1"

    def test_location_captured(self):
        exc = EventNotFoundError("Missing")

        assert exc.location.method_name == "test_location_captured"
        assert exc.location.file_name == "test_exceptions.py"
        assert exc.location.class_name == "TestExceptionCreation"
        assert exc.location.line_number > 0

    def test_entities_taken_from_context(self):
        exc = KartUnavailableError(
            "Kart 7 is taken",
            context={"kart_number": 7, "pilot_id": "a1", "event_id": "evt_1"},
        )

        assert exc.entities == {"event_id": "evt_1", "pilot_id": "a1"}
        assert exc.log_extra() == {
            "error_code": "LG_CON_003",
            "event_id": "evt_1",
            "pilot_id": "a1",
        }


class TestExceptionToDict:
    """Tests for exception JSON serialization."""

    def test_structure(self):
        result = KartUnavailableError("Kart 7 is taken", context={"kart_number": 7}).to_dict()

        assert result["error"] == {
            "type": "KartUnavailableError",
            "code": "LG_CON_003",
            "family": "conflict",
            "retryable": True,
            "message": "Kart 7 is taken",
        }
        assert set(result["location"]) == {"class", "method", "file", "line", "timestamp"}
        assert result["context"] == {"kart_number": 7}
        assert "cause" not in result
        json.dumps(result)

    def test_cause_and_trace(self):
        try:
            raise ValueError("bad payload")
        except ValueError as e:
            exc = RaceResultUnavailableError("Malformed", cause=e)

        result = exc.to_dict(include_trace=True)

        assert result["cause"] == {"type": "ValueError", "message": "bad payload"}
        assert any("bad payload" in line for line in result["stack_trace"])
        assert "stack_trace" not in exc.to_dict()


class TestExceptionHandler:
    """Tests for exception handler utilities."""

    def test_format_league_error(self):
        exc = StateError("Wrong state", context={"event_id": "evt_1"})

        result = format_exception_json(exc, extra_context={"request_id": "r-1"})

        assert result["error"]["code"] == "LG_STA_001"
        assert result["context"] == {"event_id": "evt_1", "request_id": "r-1"}

    def test_format_standard_exception(self):
        try:
            raise KeyError("missing")
        except KeyError as e:
            result = format_exception_json(e, include_trace=True)

        assert result["error"]["type"] == "KeyError"
        assert result["error"]["code"] == "PYTHON_ERR"
        assert result["location"]["method"] == "test_format_standard_exception"
        assert result["stack_trace"]

    def test_error_codes(self):
        assert get_error_code(AlreadyFinalizedError("done")) == "LG_CON_005"
        assert get_error_code(RuntimeError("boom")) == "PYTHON_ERR"

    def test_log_exception_writes_json(self, caplog):
        log = logging.getLogger("squadron_league.test")

        with caplog.at_level(logging.ERROR, logger="squadron_league.test"):
            log_exception(AuthorizationError("Not allowed"), log=log)

        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["error"]["type"] == "AuthorizationError"

    def test_log_exception_attaches_league_ids(self, caplog):
        log = logging.getLogger("squadron_league.test")
        exc = StaleWriteError("Write lost", context={"pilot_id": "a1", "expected_version": 3})

        with caplog.at_level(logging.ERROR, logger="squadron_league.test"):
            log_exception(exc, log=log)

        record = caplog.records[-1]
        assert record.error_code == "LG_CON_006"
        assert record.pilot_id == "a1"
        assert not hasattr(record, "event_id")


class TestHTTPStatusCodes:
    """Tests for HTTP status code mapping."""

    @pytest.mark.parametrize(
        ("exc", "status"),
        [
            (ValidationError("bad"), 400),
            (InvalidKartNumberError("bad kart"), 400),
            (AuthorizationError("no"), 403),
            (EventNotFoundError("gone"), 404),
            (RaceSessionNotFoundError("gone"), 404),
            (IncidentNotFoundError("gone"), 404),
            (KartUnavailableError("taken"), 409),
            (AlreadyFinalizedError("done"), 409),
            (StateError("wrong state"), 409),
            (InvitationExpiredError("late"), 409),
            (RaceResultUnavailableError("timing down"), 502),
            (LeagueError("generic"), 500),
            (ValueError("bad"), 400),
            (ConnectionError("down"), 503),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_mapping(self, exc, status):
        assert get_http_status_code(exc) == status

    def test_client_errors(self):
        assert is_client_error(KartUnavailableError("taken"))
        assert not is_client_error(RaceResultUnavailableError("timing down"))


class TestExceptionCatchPatterns:
    """Tests for exception catching patterns."""

    def test_catch_conflicts_together(self):
        for exc in (KartUnavailableError("k"), CapacityExceededError("c"), StaleWriteError("s")):
            with pytest.raises(ConflictError) as caught:
                raise exc
            assert caught.value.error_code.startswith("LG_CON")
