"""
Input constraints for signup and login.

Submitted values are checked with Pydantic models; failures are converted
into the shared ValidationError so callers only ever see portal exceptions.
"""

from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel, Field, field_validator
from pydantic.networks import validate_email

from shared.exceptions import ValidationError

NAME_MAX_LENGTH = 20
PASSWORD_MAX_LENGTH = 20
# bcrypt only reads the first 72 bytes of its input
PASSWORD_MAX_BYTES = 72

FormT = TypeVar("FormT", bound=BaseModel)


def _check_email(value: str) -> str:
    # Validate the address but keep it exactly as typed; email is a
    # case-sensitive key and must not be normalized.
    validate_email(value)
    return value


def _check_password_bytes(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must encode to at most {PASSWORD_MAX_BYTES} bytes")
    return value


class LoginForm(BaseModel):
    """Credentials submitted on the login form."""

    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("email")
    @classmethod
    def _email_is_well_formed(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


class SignupForm(BaseModel):
    """Fields submitted on the signup form."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=NAME_MAX_LENGTH,
        pattern=r"^[A-Za-z0-9]+$",
    )
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("email")
    @classmethod
    def _email_is_well_formed(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, value: str) -> str:
        return _check_password_bytes(value)


def parse_input(model: type[FormT], **values: Any) -> FormT:
    """
    Build a form model, raising ValidationError on any constraint violation.

    The error message names the first offending field (e.g. "Invalid name")
    and the details carry one message per failing field.
    """
    try:
        return model(**values)
    except pydantic.ValidationError as e:
        fields: dict[str, str] = {}
        for error in e.errors():
            field = str(error["loc"][0]) if error["loc"] else "input"
            fields.setdefault(field, error["msg"])
        first = next(iter(fields), "input")
        raise ValidationError(
            f"Invalid {first}",
            code="INVALID_INPUT",
            details={"fields": fields},
        ) from e
