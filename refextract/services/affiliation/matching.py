"""
Author name matching and query cleanup shared by the lookup tiers.
"""

import re


def clean_query_text(text: str) -> str:
    """Replace punctuation with spaces and collapse whitespace for search queries."""
    text = re.sub(r"[^\w\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def normalize_author_name(name: str) -> str:
    """
    Normalize an author name for comparison.

    "Last, First" is reordered to "First Last" before lowercasing, stripping
    punctuation and collapsing whitespace, so "Wiener, N." and "N. Wiener"
    normalize to the same string.
    """
    if name.count(",") == 1:
        last, first = (part.strip() for part in name.split(","))
        if last and first:
            name = f"{first} {last}"
    name = re.sub(r"[^\w\s]", "", name.lower())
    return re.sub(r"\s+", " ", name).strip()


def authors_match(name1: str, name2: str) -> bool:
    """
    Whether two author names likely refer to the same person.

    Names match if their normalized forms are equal or one contains the
    other. Otherwise surnames (last tokens) must be equal, and first-name
    initials must agree unless one of the names has no first name.
    """
    n1 = normalize_author_name(name1)
    n2 = normalize_author_name(name2)
    if not n1 or not n2:
        return False

    if n1 == n2 or n1 in n2 or n2 in n1:
        return True

    parts1 = n1.split(" ")
    parts2 = n2.split(" ")
    if parts1[-1] != parts2[-1]:
        return False

    initial1 = parts1[0][0] if len(parts1) > 1 else ""
    initial2 = parts2[0][0] if len(parts2) > 1 else ""
    if initial1 and initial2 and initial1 != initial2:
        return False
    return True


def parse_year(year: str | int | None) -> int | None:
    """Leading integer of a year string ("1979a" -> 1979), or None."""
    if year is None:
        return None
    match = re.match(r"\s*(\d+)", str(year))
    return int(match.group(1)) if match else None
