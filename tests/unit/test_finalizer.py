"""Unit tests for response finalization and the error taxonomy."""

from __future__ import annotations

import pytest

from visaplex.pipeline.dispatcher import Success, TransportFailure, UpstreamFailure
from visaplex.pipeline.errors import (
    GatewayError,
    MethodNotAllowed,
    ServerError,
    UpstreamError,
    ValidationError,
)
from visaplex.pipeline.finalizer import FinalAnswer, finalize
from visaplex.policy import default_policy

DISCLAIMER = "_(General information only — not legal advice.)_"


class TestSuccess:
    def test_disclaimer_appended(self) -> None:
        result = finalize(Success("Six months."), True, True, default_policy())
        assert result == FinalAnswer(answer=f"Six months.\n\n{DISCLAIMER}", scope="in")

    def test_disclaimer_omitted(self) -> None:
        result = finalize(Success("Six months."), True, False, default_policy())
        assert result.answer == "Six months."

    def test_out_of_scope_tag(self) -> None:
        result = finalize(Success("Refused."), False, False, default_policy())
        assert result.scope == "out"

    def test_scope_comes_from_verdict_not_answer(self) -> None:
        """An upstream that ignores the refusal instruction does not change the tag."""
        result = finalize(Success("Here is how to get a tourist visa..."), False, True, default_policy())
        assert result.scope == "out"

    def test_to_dict(self) -> None:
        assert FinalAnswer(answer="a", scope="in").to_dict() == {"answer": "a", "scope": "in"}


class TestFailures:
    def test_upstream_failure_raises_502(self) -> None:
        with pytest.raises(UpstreamError) as exc_info:
            finalize(UpstreamFailure(503, "overloaded"), True, True, default_policy())
        assert exc_info.value.status_code == 502
        assert exc_info.value.to_dict() == {"error": "Upstream error", "detail": "overloaded"}

    def test_transport_failure_raises_500(self) -> None:
        with pytest.raises(ServerError) as exc_info:
            finalize(TransportFailure("ConnectError"), True, True, default_policy())
        assert exc_info.value.to_dict() == {"error": "Server error"}

    def test_unknown_outcome_rejected(self) -> None:
        with pytest.raises(TypeError):
            finalize("not an outcome", True, True, default_policy())  # type: ignore[arg-type]


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "error, status, body",
        [
            (ValidationError(), 400, {"error": "Missing question"}),
            (MethodNotAllowed(), 405, {"error": "Method not allowed"}),
            (UpstreamError("bad gateway"), 502, {"error": "Upstream error", "detail": "bad gateway"}),
            (ServerError(), 500, {"error": "Server error"}),
        ],
    )
    def test_status_and_body(self, error: GatewayError, status: int, body: dict) -> None:
        assert error.status_code == status
        assert error.to_dict() == body

    def test_upstream_error_detail_truncated(self) -> None:
        error = UpstreamError("x" * 1000)
        assert len(error.to_dict()["detail"]) == 300

    def test_upstream_error_empty_detail_kept(self) -> None:
        assert UpstreamError().to_dict() == {"error": "Upstream error", "detail": ""}

    def test_all_are_gateway_errors(self) -> None:
        for cls in (ValidationError, MethodNotAllowed, UpstreamError, ServerError):
            assert issubclass(cls, GatewayError)
