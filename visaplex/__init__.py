"""VisaPlex gateway: PII-masking, scope-restricted front door to an LLM chat API."""

__version__ = "1.0.0"
