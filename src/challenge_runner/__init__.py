from .challenges import CHALLENGES, Challenge, challenge_from_row, get_challenge
from .execution.local_engine import LocalEngine
from .policy import ExecutionResult, FailureKind, RunnerPolicy
from .rate_limit import RateLimitDecision, RateLimiter
from .runner import execute, run_challenge

__all__ = [
    "CHALLENGES",
    "Challenge",
    "ExecutionResult",
    "FailureKind",
    "LocalEngine",
    "RateLimitDecision",
    "RateLimiter",
    "RunnerPolicy",
    "challenge_from_row",
    "execute",
    "get_challenge",
    "run_challenge",
]
