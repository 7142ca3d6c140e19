"""One-time credential generation for new identities."""

from __future__ import annotations

import secrets

from provisioning.domain.models.entitlements import PasswordPolicy


# Visually ambiguous characters (I, l, O, 0, 1) are left out.
UPPERCASE = "ABCDEFGHJKLMNPQRSTUVWXYZ"
LOWERCASE = "abcdefghjkmnpqrstuvwxyz"
DIGITS = "23456789"
SYMBOLS = "!@#$%^&*"

CHARACTER_CLASSES = (UPPERCASE, LOWERCASE, DIGITS, SYMBOLS)


def generate_one_time_password(policy: PasswordPolicy) -> str:
    """Generate a password with at least one character from every class."""
    rng = secrets.SystemRandom()
    alphabet = "".join(CHARACTER_CLASSES)
    chars = [rng.choice(cls) for cls in CHARACTER_CLASSES]
    chars.extend(rng.choice(alphabet) for _ in range(policy.min_length - len(chars)))
    rng.shuffle(chars)
    return "".join(chars)


def satisfies_policy(password: str, policy: PasswordPolicy) -> bool:
    if len(password) < policy.min_length:
        return False
    return all(any(c in cls for c in password) for cls in CHARACTER_CLASSES)
