"""
Referential integrity of the core layer.

A core row whose college_id / major_id points at a core record that does not
exist is an orphan. Orphans are reported, never repaired here.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from core_sync.models import CoreCollege, CoreAdmissionScore, CoreCampusLife, CoreMajor
from .contracts import IntegrityReport, OrphanReference
from .repository import store_errors, utcnow

logger = logging.getLogger(__name__)

# (child model, fk column name, parent model)
CORE_REFERENCES = [
    (CoreAdmissionScore, "college_id", CoreCollege),
    (CoreAdmissionScore, "major_id", CoreMajor),
    (CoreCampusLife, "college_id", CoreCollege),
]


def _orphans(db: Session, child, column_name: str, parent) -> List[OrphanReference]:
    column = getattr(child, column_name)
    stmt = (
        select(child.id, column)
        .outerjoin(parent, parent.id == column)
        .where(column.is_not(None), parent.id.is_(None))
        .order_by(child.id)
    )
    return [
        OrphanReference(
            table=child.__tablename__,
            record_id=row[0],
            column=column_name,
            missing_id=row[1],
        )
        for row in db.execute(stmt)
    ]


def find_orphans(db: Session) -> IntegrityReport:
    report = IntegrityReport(checked_at=utcnow())
    with store_errors("check core referential integrity"):
        for child, column_name, parent in CORE_REFERENCES:
            report.orphans.extend(_orphans(db, child, column_name, parent))

    if report.ok:
        logger.info("✅ Core layer referential integrity: no orphans")
    else:
        for key, count in report.count_by_column().items():
            logger.warning(f"⚠️ {count} orphan references in {key}")
    return report
