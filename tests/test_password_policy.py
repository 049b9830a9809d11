import pytest

import password_policy
from errors import ConfigurationError, ValidationError


def test_gate_accepts_strong_password():
    assert password_policy.validate("Str0ng!Passw0rd")
    password_policy.check_strength("Str0ng!Passw0rd")


def test_gate_rejects_weak_password_and_names_missing_classes():
    assert not password_policy.validate("password123")
    with pytest.raises(ConfigurationError) as excinfo:
        password_policy.check_strength("password123")

    assert excinfo.value.code == "PASSWORD_WEAK"
    assert "uppercase" in excinfo.value.message
    assert "symbol" in excinfo.value.message
    assert "lowercase" not in excinfo.value.message


@pytest.mark.parametrize("blank", ["", "   "])
def test_gate_rejects_blank_password(blank):
    assert not password_policy.validate(blank)
    with pytest.raises(ConfigurationError) as excinfo:
        password_policy.check_strength(blank)
    assert excinfo.value.code == "PASSWORD_REQUIRED"


def test_missing_requirements_reports_length():
    assert password_policy.missing_requirements("Ab1!") == ["length>=10"]
    assert password_policy.missing_requirements("Str0ng!Passw0rd") == []


def test_common_password_scores_zero():
    result = password_policy.score("Password123")
    assert result.score == 0
    assert result.label == "very-weak"


def test_score_rewards_length_and_diversity():
    assert password_policy.score("Str0ng!Passw0rd").score == 4
    assert password_policy.score("Str0ng!Passw0rd").label == "very-strong"


def test_score_penalizes_repeats_and_sequences():
    # 长度 8 (+1)，两类字符 (+0)，有重复 aaa，有顺序 abc
    assert password_policy.score("aaabc999").score == 1


def test_score_is_clamped():
    for pwd in ["", "a", "Zq!9Zq!9Zq!9Zq!9Zq!9"]:
        assert 0 <= password_policy.score(pwd).score <= 4


def test_random_password_generation():
    first = password_policy.generate_random_password()
    assert len(first) == 32
    assert first != password_policy.generate_random_password()
    assert len(password_policy.generate_random_password(7)) == 7


@pytest.mark.parametrize("length", [0, -4])
def test_random_password_rejects_non_positive_length(length):
    with pytest.raises(ValidationError) as excinfo:
        password_policy.generate_random_password(length)
    assert excinfo.value.code == "LENGTH_INVALID"
