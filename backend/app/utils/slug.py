"""Report slug derivation."""

import re
from typing import Optional

from sqlalchemy.orm import Session

from app.models.report import Report

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(name: str) -> str:
    """Lowercase, replace non-alphanumeric runs with a hyphen, strip. Empty -> 'report'."""
    s = re.sub(r"[^a-z0-9]+", "-", (name or "").lower()).strip("-")
    return s if s else "report"


def unique_slug(db: Session, base: str, exclude_id: Optional[int] = None) -> str:
    """Return base, or base-2, base-3, ... whichever is not taken by another report."""
    query = db.query(Report.slug).filter((Report.slug == base) | (Report.slug.like(f"{base}-%")))
    if exclude_id is not None:
        query = query.filter(Report.id != exclude_id)
    used = {row[0] for row in query.all()}
    if base not in used:
        return base
    n = 2
    while f"{base}-{n}" in used:
        n += 1
    return f"{base}-{n}"
