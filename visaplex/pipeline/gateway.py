"""The answer pipeline: Ingress → Redact → Classify → Assemble → Dispatch → Finalize.

``AnswerPipeline`` holds only immutable collaborators (policy, compiled
redactor and classifier, dispatcher), so one instance serves every concurrent
request. All per-request values live in ``run()``'s locals.
"""

from __future__ import annotations

from typing import Any

from visaplex.constants import DEFAULT_TOPIC
from visaplex.pipeline.classifier import ScopeClassifier
from visaplex.pipeline.dispatcher import UpstreamDispatcher
from visaplex.pipeline.finalizer import FinalAnswer, finalize
from visaplex.pipeline.ingress import parse_request
from visaplex.pipeline.prompt import assemble_prompt
from visaplex.pipeline.redactor import Redactor
from visaplex.policy.definitions import Policy
from visaplex.utils.logger import get_logger

logger = get_logger(__name__)


class AnswerPipeline:
    """Single-pass, stateless request pipeline.

    Args:
        policy:        Versioned policy (texts and pattern sets).
        dispatcher:    Upstream dispatcher bound to a shared HTTP client.
        default_topic: Topic used when the request body omits one.
    """

    def __init__(
        self,
        policy: Policy,
        dispatcher: UpstreamDispatcher,
        default_topic: str = DEFAULT_TOPIC,
    ) -> None:
        self.policy = policy
        self.dispatcher = dispatcher
        self.default_topic = default_topic
        self.redactor = Redactor(policy.redaction_patterns)
        self.classifier = ScopeClassifier(policy.scope_phrases)

    async def run(self, body: Any) -> FinalAnswer:
        """Answer one request.

        Raises:
            ValidationError: blank question (no upstream call is made).
            UpstreamError:   upstream returned a non-success status.
            ServerError:     transport failure.
        """
        request = parse_request(body, default_topic=self.default_topic)

        redacted, redaction_counts = self.redactor.redact_with_counts(request.question)
        in_scope = self.classifier.is_in_scope(redacted)

        logger.info(
            "question_classified",
            question_chars=len(request.question),
            redactions=redaction_counts,
            in_scope=in_scope,
            topic=request.topic,
        )

        bundle = assemble_prompt(redacted, in_scope, request.topic, self.policy)
        outcome = await self.dispatcher.dispatch(
            bundle, fallback=self.policy.fallback_answer(in_scope)
        )
        answer = finalize(outcome, in_scope, request.include_disclaimer, self.policy)

        logger.info(
            "chat_answered",
            scope=answer.scope,
            answer_chars=len(answer.answer),
            disclaimer=request.include_disclaimer,
        )
        return answer
