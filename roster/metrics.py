"""
Status metrics with integrity repair.

refresh_metrics() is the only place invalid statuses are written back:
each member whose stored status was null or outside the enumeration is
reset to Active and persisted, then every member is counted once.
"""

import logging

from .errors import IntegrityError
from .records import RecordStore
from .types import MemberStatus, StatusMetrics, empty_metrics

logger = logging.getLogger(__name__)


def repair_statuses(records: RecordStore) -> list[str]:
    """
    Persist the default status for every member that needs it.

    Returns:
        IDs of repaired members (repairs whose persist failed included;
        they are repaired in memory regardless)
    """
    repaired = []
    for member in records.list():
        if not member.needs_repair:
            continue
        logger.warning(
            "Member %s (%s) has invalid status %r, resetting to %s",
            member.id, member.full_name, member.raw_status,
            MemberStatus.default().value,
        )
        records.repair_status(member.id)
        repaired.append(member.id)
    return repaired


def count_by_status(records: RecordStore) -> StatusMetrics:
    """Single pass over all members. Every status key is present."""
    counts = empty_metrics()
    for member in records.list():
        counts[member.status] += 1
    return counts


def refresh_metrics(records: RecordStore) -> StatusMetrics:
    """
    Repair invalid statuses, then count members per status.

    Raises:
        IntegrityError: If the counts do not add up to the member count
    """
    repaired = repair_statuses(records)
    counts = count_by_status(records)

    total = len(records)
    counted = sum(counts.values())
    if counted != total:
        raise IntegrityError(
            f"Status counts sum to {counted} but there are {total} members"
        )

    logger.info(
        "Metrics refreshed: %d members, %d repaired, %s",
        total, len(repaired),
        ", ".join(f"{s.value}={n}" for s, n in counts.items()),
    )
    return counts
