"""Validation helpers."""

from typing import Iterable, Optional

from .helpers import LANG_CODE_RE, normalize_lang_code


def ensure(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


def ensure_language(code: Optional[str], supported: Iterable[str]) -> str:
    """Return the normalised ``code`` or raise if it is not supported."""
    norm = normalize_lang_code(code)
    ensure(bool(norm) and bool(LANG_CODE_RE.match(norm or "")), f"invalid language code: {code!r}")
    ensure(norm in set(supported), f"unsupported language: {code!r}")
    return norm
