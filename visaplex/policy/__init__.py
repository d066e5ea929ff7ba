"""Policy package: the versioned texts and pattern sets driving the pipeline.

    from visaplex.policy import Policy, default_policy, load_policy
"""

from visaplex.policy.definitions import (
    Policy,
    RedactionPattern,
    ScopePhrase,
    build_policy,
    default_policy,
)
from visaplex.policy.loader import load_policy, policy_from_dict

__all__ = [
    "Policy",
    "RedactionPattern",
    "ScopePhrase",
    "build_policy",
    "default_policy",
    "load_policy",
    "policy_from_dict",
]
