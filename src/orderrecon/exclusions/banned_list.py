"""Banned customer list: loading, caching and matching."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from ..coercion_utils import clean_str
from ..ingestion_utils import read_input_file
from ..standards.naming import email_domain, normalize_email_for_compare


LOGGER = logging.getLogger("orderrecon.exclusions")

_ENTRY_SEPARATORS = re.compile(r"[,\s;]+")


@dataclass(frozen=True)
class BannedList:
    exact_emails: frozenset = frozenset()
    banned_domains: frozenset = frozenset()

    def __len__(self) -> int:
        return len(self.exact_emails) + len(self.banned_domains)


def parse_banned_entries(cells: Iterable[object], always_banned_domains: Iterable[str] = ()) -> BannedList:
    """Split raw list cells into exact emails and domains.

    A cell may hold several entries separated by commas, semicolons or
    whitespace. ``*@x`` / ``@x`` and bare ``x`` are domains; anything else
    containing ``@`` is an exact email, stored compare-normalized.
    """
    exact = set()
    domains = set()
    for cell in cells:
        text = clean_str(cell).lower()
        if not text:
            continue
        for entry in _ENTRY_SEPARATORS.split(text):
            entry = entry.strip()
            if not entry:
                continue
            if entry.startswith("*@"):
                entry = entry[1:]
            if entry.startswith("@"):
                if len(entry) > 1:
                    domains.add(entry[1:])
            elif "@" in entry:
                exact.add(normalize_email_for_compare(entry))
            else:
                domains.add(entry)
    for domain in always_banned_domains:
        d = clean_str(domain).lower().lstrip("*@")
        if d:
            domains.add(d)
    return BannedList(exact_emails=frozenset(exact), banned_domains=frozenset(domains))


def load_banned_list(source: str | Path | None, always_banned_domains: Iterable[str] = ()) -> BannedList:
    """Read the first column of a CSV/XLSX banned list (header row skipped).

    A missing source is not an error: only ``always_banned_domains`` apply.
    """
    if not source:
        return parse_banned_entries([], always_banned_domains)
    path = Path(source)
    if not path.exists():
        LOGGER.warning("Banned list %s not found; applying configured domains only.", path)
        return parse_banned_entries([], always_banned_domains)
    df = read_input_file(path)
    cells = df.iloc[:, 0].tolist() if not df.empty and len(df.columns) else []
    return parse_banned_entries(cells, always_banned_domains)


def is_banned_email(email: object, banned: BannedList) -> bool:
    """True when the email is exact-banned or its domain falls under a banned domain."""
    normalized = normalize_email_for_compare(email)
    if not normalized:
        return False
    if normalized in banned.exact_emails:
        return True
    domain = email_domain(normalized)
    if not domain:
        return False
    return any(domain == d or domain.endswith("." + d) for d in banned.banned_domains)


class BannedListCache:
    """Owns the banned list for one build invocation (or any explicit lifetime).

    ``get()`` loads at most once until ``invalidate()`` is called.
    """

    def __init__(self, source: str | Path | None, always_banned_domains: Iterable[str] = ()) -> None:
        self.source = source
        self.always_banned_domains = tuple(always_banned_domains)
        self._value: Optional[BannedList] = None
        self.loads = 0

    def get(self) -> BannedList:
        if self._value is None:
            self._value = load_banned_list(self.source, self.always_banned_domains)
            self.loads += 1
            LOGGER.info(
                "Loaded banned list: %d exact emails, %d domains.",
                len(self._value.exact_emails),
                len(self._value.banned_domains),
            )
        return self._value

    def invalidate(self) -> None:
        self._value = None


def banned_mask(emails: pd.Series, banned: BannedList) -> pd.Series:
    """Boolean mask over a Series of raw emails."""
    return emails.map(lambda e: is_banned_email(e, banned)).astype(bool)
