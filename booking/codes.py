"""Confirmation codes: the resident's only handle on a booking."""

from __future__ import annotations

import re
import secrets

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8

_LOOKUP_CODE_RE = re.compile(r"^[A-Z0-9]{8}$")


def generate_code() -> str:
    # I, O, 0 and 1 are left out so codes survive being read aloud.
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def normalize_code(raw: str) -> str:
    """Upper-case and strip the decorative hyphen and whitespace.

    Raises ValueError when the result is not 8 upper-case alphanumerics.
    """
    if not isinstance(raw, str):
        raise ValueError("Confirmation code must be a string.")
    code = re.sub(r"[\s-]", "", raw).upper()
    if not _LOOKUP_CODE_RE.match(code):
        raise ValueError(f"Invalid confirmation code {raw!r}; expected 8 letters or digits.")
    return code


def format_code(code: str) -> str:
    if len(code) != CODE_LENGTH:
        return code
    return f"{code[:4]}-{code[4:]}"
