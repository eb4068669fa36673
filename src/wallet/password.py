"""
Password Policy - Strength and length gating for wallet passwords.

Scoring is delegated to zxcvbn, which estimates guessability and maps it to
a 0-4 score. A password is accepted only when its length is within bounds
and its score reaches the minimum. All violations are reported together.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from zxcvbn import zxcvbn


MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 128
MIN_PASSWORD_SCORE = 3

# zxcvbn refuses (or crawls on) very long inputs; anything past this
# is already far beyond the score threshold.
SCORER_MAX_INPUT = 72


@dataclass
class StrengthScore:
    """Raw scorer output."""
    score: int                                   # 0 (weakest) .. 4 (strongest)
    warning: str = ""
    suggestions: list[str] = field(default_factory=list)


def zxcvbn_scorer(password: str) -> StrengthScore:
    """Score a password with zxcvbn."""
    result = zxcvbn(password[:SCORER_MAX_INPUT])
    feedback = result.get("feedback") or {}
    return StrengthScore(
        score=int(result["score"]),
        warning=feedback.get("warning") or "",
        suggestions=list(feedback.get("suggestions") or []),
    )


@dataclass
class PasswordEvaluation:
    """Outcome of evaluating a candidate password."""
    is_valid: bool
    reasons: list[str]
    score: int


class PasswordPolicy:
    """
    Evaluates candidate passwords. Pure: no side effects.

    The scorer is injectable so callers (and tests) can swap the
    dictionary-based estimator for something deterministic.
    """

    def __init__(self,
                 min_length: int = MIN_PASSWORD_LENGTH,
                 max_length: int = MAX_PASSWORD_LENGTH,
                 min_score: int = MIN_PASSWORD_SCORE,
                 scorer: Optional[Callable[[str], StrengthScore]] = None):
        self.min_length = min_length
        self.max_length = max_length
        self.min_score = min_score
        self.scorer = scorer or zxcvbn_scorer

    def evaluate(self, password: str) -> PasswordEvaluation:
        """Check length bounds and strength; collect every violated rule."""
        reasons = []

        if len(password) < self.min_length:
            reasons.append(f"Password must be at least {self.min_length} characters long")
        if len(password) > self.max_length:
            reasons.append(f"Password must be at most {self.max_length} characters long")

        strength = self.scorer(password) if password else StrengthScore(score=0)
        if strength.score < self.min_score:
            reasons.append(
                f"Password is too weak (strength {strength.score}/4, need {self.min_score})"
            )
            if strength.warning:
                reasons.append(strength.warning)
            reasons.extend(strength.suggestions)

        return PasswordEvaluation(
            is_valid=not reasons,
            reasons=reasons,
            score=strength.score,
        )


def evaluate_password(password: str) -> PasswordEvaluation:
    """Evaluate with the default policy."""
    return PasswordPolicy().evaluate(password)
