"""Centralized normalization for customer emails and product text."""
from __future__ import annotations

import re

from ..coercion_utils import clean_str

_EMAIL_SEPARATORS = re.compile(r"[,\s;]+")
_NON_ALNUM_SPACE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

GMAIL_DOMAINS = frozenset({"gmail.com", "googlemail.com"})


def normalize_email(email_raw: object) -> str:
    """Display form written to ``customer_email_norm``: trimmed and lower-cased."""
    return clean_str(email_raw).lower()


def normalize_email_for_compare(value: object) -> str:
    """Canonical form used for banned-list matching.

    - case-folded, ``mailto:`` stripped
    - only the first token before a comma, semicolon or whitespace
    - ``+tag`` suffix removed from the local part
    - dots removed from the local part for gmail-family domains
    """
    email = clean_str(value).lower()
    if not email:
        return ""
    if email.startswith("mailto:"):
        email = email[len("mailto:"):]
    email = _EMAIL_SEPARATORS.split(email.strip())[0].strip()
    at = email.rfind("@")
    if at == -1:
        return email

    local = email[:at].split("+")[0]
    domain = email[at + 1:]
    if domain in GMAIL_DOMAINS:
        local = local.replace(".", "")
    return f"{local}@{domain}"


def email_domain(normalized_email: str) -> str:
    at = normalized_email.rfind("@")
    return normalized_email[at + 1:] if at != -1 else ""


def normalize_product_text(product_name: object) -> str:
    """Lower-case, punctuation to spaces, whitespace collapsed."""
    text = _NON_ALNUM_SPACE.sub(" ", clean_str(product_name).lower())
    return _WHITESPACE.sub(" ", text).strip()
