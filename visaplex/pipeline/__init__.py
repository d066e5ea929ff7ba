"""Request pipeline stages, in execution order.

    ingress     parse_request()        raw body → IncomingRequest
    redactor    Redactor               question → redacted text
    classifier  ScopeClassifier        redacted text → in/out of scope
    prompt      assemble_prompt()      → PromptBundle
    dispatcher  UpstreamDispatcher     → UpstreamOutcome
    finalizer   finalize()             → FinalAnswer
    gateway     AnswerPipeline         wires the stages together
"""
