"""Status bucketing and progress-status labelling.

This module provides the small label functions shared by the aggregator and
the dashboard view models. Thresholds come from config.py
(PROGRESS_STATUS_THRESHOLDS, STATUS_BUCKET_LABELS).
"""

from __future__ import annotations

from .config import PROGRESS_STATUS_THRESHOLDS, STATUS_BUCKET_LABELS

NOT_STARTED, IN_PROGRESS, DONE = STATUS_BUCKET_LABELS


def status_bucket(done_ratio: int | None) -> str:
    """Map a raw completion ratio to its distribution bucket.

    Parameters
    ----------
    done_ratio : int | None
        Overall 0-100 completion ratio reported by the tracker.

    Returns
    -------
    str
        "Not Started" for 0 (or missing), "Done" for 100 and above,
        "In Progress" otherwise.

    Examples
    --------
    >>> status_bucket(0)
    'Not Started'
    >>> status_bucket(40)
    'In Progress'
    >>> status_bucket(100)
    'Done'
    """
    ratio = done_ratio or 0
    if ratio <= 0:
        return NOT_STARTED
    if ratio >= 100:
        return DONE
    return IN_PROGRESS


def progress_status(progress: float | None) -> str:
    """Label a 0-100 performance figure for goal/department cards.

    Parameters
    ----------
    progress : float | None
        Period-mapped performance.

    Returns
    -------
    str
        One of: "Achieved", "On Track", "In Progress", "Weak Performance",
        "Requires Intervention".
    """
    value = progress or 0
    for threshold, label in PROGRESS_STATUS_THRESHOLDS:
        if value >= threshold:
            return label
    return PROGRESS_STATUS_THRESHOLDS[-1][1]


def is_achieved(progress: float | None) -> bool:
    return progress_status(progress) == PROGRESS_STATUS_THRESHOLDS[0][1]
