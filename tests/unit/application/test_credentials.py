"""Tests for one-time credential generation."""

from __future__ import annotations

from provisioning.domain.models.entitlements import PasswordPolicy
from provisioning.domain.services.credentials import (
    CHARACTER_CLASSES,
    generate_one_time_password,
    satisfies_policy,
)


class TestOneTimePassword:
    def test_length_follows_policy(self) -> None:
        assert len(generate_one_time_password(PasswordPolicy(min_length=24))) == 24

    def test_contains_every_class(self) -> None:
        policy = PasswordPolicy(min_length=8)
        for _ in range(50):
            password = generate_one_time_password(policy)
            assert all(any(c in cls for c in password) for cls in CHARACTER_CLASSES)
            assert satisfies_policy(password, policy)

    def test_passwords_differ(self) -> None:
        policy = PasswordPolicy()
        assert len({generate_one_time_password(policy) for _ in range(20)}) == 20

    def test_no_ambiguous_characters(self) -> None:
        password = "".join(generate_one_time_password(PasswordPolicy(min_length=200)) for _ in range(5))
        assert not set(password) & set("Il0O1")


class TestSatisfiesPolicy:
    def test_too_short(self) -> None:
        assert not satisfies_policy("Ab3!", PasswordPolicy(min_length=8))

    def test_missing_symbol(self) -> None:
        assert not satisfies_policy("Abcdefg23456", PasswordPolicy(min_length=8))
