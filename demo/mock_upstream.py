#!/usr/bin/env python3
"""Mock chat completions upstream for the VisaPlex demo.

Runs on port 4243 and answers like OpenAI's /v1/chat/completions, so the
gateway can be exercised end to end without a real API key. Point the gateway
at it with:

    # .visaplex/config.yaml
    version: 1
    upstream:
      url: http://127.0.0.1:4243/v1/chat/completions

    OPENAI_API_KEY=sk-demo visaplex

Out-of-scope prompts (the gateway supplies a "Refusal to use: ..." entry) are
answered with that refusal verbatim; in-scope prompts get a canned answer.

Usage:
    python3 demo/mock_upstream.py
"""

import time
from itertools import cycle

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

REFUSAL_PREFIX = "Refusal to use: "

app = FastAPI(title="Mock Chat Completions Upstream (VisaPlex Demo)")

# Canned in-scope answers
RESPONSES = cycle([
    "- Partner visas usually take several months to process.\n"
    "- INZ assesses whether the relationship is genuine and stable.\n"
    "- Processing times vary by case.",
    "- You generally need evidence of living together for 12 months.\n"
    "- Joint bills, a shared lease, and photos over time all help.",
    "- Medicals and police certificates are usually required.\n"
    "- Check INZ for the current list before you apply.",
])


def make_chat_response(content: str, model: str) -> dict:
    """Build a minimal OpenAI-compatible chat completion response."""
    return {
        "id": f"chatcmpl-demo-{int(time.time())}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": 42,
            "completion_tokens": len(content.split()),
            "total_tokens": 42 + len(content.split()),
        },
    }


def pick_answer(messages: list) -> str:
    """Reply with the supplied refusal when present, otherwise the next canned answer."""
    for message in messages:
        content = message.get("content") or ""
        if message.get("role") == "user" and content.startswith(REFUSAL_PREFIX):
            return content[len(REFUSAL_PREFIX):]
    return next(RESPONSES)


@app.post("/v1/chat/completions")
async def chat_completions(request: Request):
    if not request.headers.get("authorization", "").startswith("Bearer "):
        return JSONResponse(
            status_code=401,
            content={"error": {"message": "Missing bearer token", "type": "invalid_request_error"}},
        )

    body = await request.json()
    messages = body.get("messages") or []
    return JSONResponse(make_chat_response(pick_answer(messages), body.get("model", "mock")))


@app.get("/health")
async def health():
    return {"status": "ok", "service": "mock-chat-upstream"}


if __name__ == "__main__":
    print("Mock chat completions upstream starting on http://127.0.0.1:4243")
    uvicorn.run(app, host="127.0.0.1", port=4243, log_level="warning")
