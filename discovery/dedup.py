"""Candidate normalization and per-run deduplication."""

from __future__ import annotations

import re
from typing import Iterable, List, Set

from bs4 import BeautifulSoup

# Loose DNS name matcher used on scraped text
SUBDOMAIN_REGEX = re.compile(
    r"(?:\*\.)?(?:[a-z0-9_](?:[a-z0-9_-]{0,61}[a-z0-9])?\.)+[a-z][a-z0-9-]{0,61}[a-z0-9]",
    re.IGNORECASE,
)


def remove_asterisk_label(name: str) -> str:
    """Strip a leading wildcard label: ``*.example.com`` -> ``example.com``."""
    name = name.strip()
    labels = name.split(".")
    if len(labels) > 1 and labels[0] == "*":
        return ".".join(labels[1:])
    return name


def normalize_name(name: str) -> str:
    return remove_asterisk_label(name).strip().lower()


def scrape_subdomain_names(body: str) -> List[str]:
    """Extract DNS-looking names from an HTML page or plain text."""
    soup = BeautifulSoup(body, "html.parser")
    text = soup.get_text(" ")
    # Hrefs frequently carry names that never show up in the visible text
    text += " " + " ".join(a["href"] for a in soup.find_all("a", href=True))
    return [m.group(0) for m in SUBDOMAIN_REGEX.finditer(text)]


class DedupSet:
    """Uniqueness collector over already-normalized values.

    Private to one pipeline invocation; callers normalize before inserting.
    """

    def __init__(self, values: Iterable[str] = ()):
        self._values: Set[str] = set()
        for value in values:
            self.insert(value)

    def insert(self, value: str) -> bool:
        """Add a value. Returns False if it was already present or empty."""
        if not value or value in self._values:
            return False
        self._values.add(value)
        return True

    def values(self) -> Set[str]:
        return set(self._values)

    def __contains__(self, value: str) -> bool:
        return value in self._values

    def __len__(self) -> int:
        return len(self._values)
