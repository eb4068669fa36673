import pytest

from wallet import PasswordPolicy, StrengthScore, evaluate_password
from wallet.password import MAX_PASSWORD_LENGTH


def test_short_password_is_rejected_with_length_reason() -> None:
    result = evaluate_password("abc")
    assert result.is_valid is False
    assert any("at least 6 characters" in r for r in result.reasons)


def test_passphrase_is_accepted() -> None:
    result = evaluate_password("correct horse battery staple")
    assert result.is_valid is True
    assert result.reasons == []
    assert result.score >= 3


def test_common_password_is_too_weak() -> None:
    result = evaluate_password("password")
    assert result.is_valid is False
    assert any("too weak" in r for r in result.reasons)


def test_overlong_password_is_rejected() -> None:
    result = evaluate_password("correct horse battery staple " * 5)
    assert len("correct horse battery staple " * 5) > MAX_PASSWORD_LENGTH
    assert result.is_valid is False
    assert any("at most" in r for r in result.reasons)


def test_all_violations_are_reported_together() -> None:
    policy = PasswordPolicy(scorer=lambda pw: StrengthScore(score=0, warning="Very guessable",
                                                            suggestions=["Add another word"]))
    result = policy.evaluate("abc")
    assert result.is_valid is False
    assert len(result.reasons) == 4
    assert "Very guessable" in result.reasons
    assert "Add another word" in result.reasons


def test_empty_password_is_not_scored() -> None:
    def scorer(pw):
        raise AssertionError("scorer called")

    result = PasswordPolicy(scorer=scorer).evaluate("")
    assert result.is_valid is False
    assert result.score == 0


@pytest.mark.parametrize("min_score,expected", [(2, True), (3, False)])
def test_min_score_is_configurable(min_score, expected) -> None:
    policy = PasswordPolicy(min_score=min_score, scorer=lambda pw: StrengthScore(score=2))
    assert policy.evaluate("long enough").is_valid is expected
