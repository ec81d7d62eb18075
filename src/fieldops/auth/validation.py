"""Client-side credential checks, run before any call to the auth service."""
from typing import Optional

MIN_PASSWORD_LENGTH = 6


class CredentialsValidationError(ValueError):
    """Raised when login/sign-up fields are empty or inconsistent."""


def validate_login(email: Optional[str], password: Optional[str]) -> None:
    if not (email or "").strip() or not password:
        raise CredentialsValidationError("Preencha email e senha.")


def validate_signup(
    email: Optional[str],
    password: Optional[str],
    confirm_password: Optional[str],
) -> None:
    validate_login(email, password)
    if password != confirm_password:
        raise CredentialsValidationError("A senha e confirmação devem ser iguais.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise CredentialsValidationError(
            f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres."
        )
