"""General helper utilities."""

import re
import time
from datetime import datetime, timezone
from typing import List, Optional

ANSI_ESC_RE = re.compile(r"\x1B\[[0-?]*[ -/]*[@-~]")
URL_RE = re.compile(r"https?://\S+", re.I)
SENTENCE_RE = re.compile(r"(?<=[.!?。！？])\s+")
LANG_CODE_RE = re.compile(r"^[a-z]{2}$")


def is_blank(text: Optional[str]) -> bool:
    return not (text or "").strip()


def sanitize_user_text(raw: str, max_len: int = 6000) -> str:
    """Strip terminal escapes and bidi overrides; cap the length."""
    if not raw:
        return ""
    s = ANSI_ESC_RE.sub("", raw)
    s = re.sub(r"[\u202A-\u202E]", "", s)
    if len(s) > max_len:
        s = s[:max_len]
    return s


def normalize_lang_code(code: Optional[str]) -> Optional[str]:
    """Lower-case a language tag and drop any region (``pt-BR`` -> ``pt``)."""
    if code is None:
        return None
    c = code.strip().lower().replace("_", "-")
    if not c:
        return None
    return c.split("-", 1)[0]


def _utcnow_iso() -> str:
    try:
        return (
            datetime.now(timezone.utc)
            .isoformat(timespec="seconds")
            .replace("+00:00", "Z")
        )
    except Exception:
        return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def _tokenize_simple(text: str) -> List[str]:
    t = URL_RE.sub(" ", text or "")
    t = re.sub(r"[^\w]+", " ", t, flags=re.UNICODE)
    return [x for x in t.lower().strip().split() if x]


def split_sentences(text: str) -> List[str]:
    s = re.sub(r"\s+", " ", (text or "").strip())
    if not s:
        return []
    return [p.strip() for p in SENTENCE_RE.split(s) if p.strip()]


def _dp_snip(text: str, n: int = 240) -> str:
    t = (text or "").strip()
    return t if len(t) <= n else (t[:n] + "…")
