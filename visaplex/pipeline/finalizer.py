"""Response finalization: UpstreamOutcome + verdict → FinalAnswer or GatewayError."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from visaplex.pipeline.dispatcher import (
    Success,
    TransportFailure,
    UpstreamFailure,
    UpstreamOutcome,
)
from visaplex.pipeline.errors import ServerError, UpstreamError
from visaplex.policy.definitions import Policy

ScopeTag = Literal["in", "out"]


@dataclass(frozen=True)
class FinalAnswer:
    """The only artifact returned to the caller on success."""

    answer: str
    scope: ScopeTag

    def to_dict(self) -> dict[str, str]:
        return {"answer": self.answer, "scope": self.scope}


def finalize(
    outcome: UpstreamOutcome,
    in_scope: bool,
    include_disclaimer: bool,
    policy: Policy,
) -> FinalAnswer:
    """Turn the dispatcher's outcome into the caller-facing answer.

    Raises:
        UpstreamError: outcome is UpstreamFailure (502, bounded detail).
        ServerError:   outcome is TransportFailure (500, no detail).
    """
    if isinstance(outcome, UpstreamFailure):
        raise UpstreamError(outcome.detail)
    if isinstance(outcome, TransportFailure):
        raise ServerError()
    if not isinstance(outcome, Success):
        raise TypeError(f"unexpected upstream outcome: {type(outcome).__name__}")

    text = outcome.answer
    if include_disclaimer:
        text = f"{text}\n\n{policy.disclaimer}"

    return FinalAnswer(answer=text, scope="in" if in_scope else "out")
