"""Central configuration, constants, and tuning knobs."""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

# =============================================================================
# Redmine Connection Settings
# =============================================================================
REDMINE_DEFAULT_SERVER = "http://localhost:3000"
TIMEZONE = "Africa/Addis_Ababa"
REQUEST_TIMEOUT = 30.0  # seconds, per HTTP request

# Include lists for the issue endpoints. The list endpoint omits
# allowed_statuses and children, so single-issue fetches ask for them.
INCLUDE_LIST = "parent,watchers"
INCLUDE_DETAIL = "parent,watchers,children,assigned_to,allowed_statuses"

# =============================================================================
# Pagination
# =============================================================================
PAGE_LIMIT: int = 100  # Redmine caps limit at 100
MAX_PAGES: int = 200  # hard stop when the server-reported total never converges

# =============================================================================
# Fan-out tuning
# =============================================================================
# Threads, because requests is synchronous and the fetches are I/O bound.
# Keep worker count moderate to avoid hammering the tracker.
FETCH_MAX_WORKERS = 8
FETCH_MIN_PARALLEL = 3  # below this, stay sequential to reduce overhead


# =============================================================================
# Custom Field Configuration
# =============================================================================
class FieldTag(str, Enum):
    """Closed set of custom fields the reconciliation layer understands."""

    WEIGHT = "weight"
    YEARLY_PLAN = "yearly_plan"
    Q1 = "q1"
    Q2 = "q2"
    Q3 = "q3"
    Q4 = "q4"
    MEASUREMENT = "measurement"
    TEAM = "team"


# Deployment field names (Amharic labels used by the planning tracker).
DEFAULT_FIELD_NAMES: dict[FieldTag, str] = {
    FieldTag.WEIGHT: "ክብደት",
    FieldTag.YEARLY_PLAN: "የዓመቱ እቅድ",
    FieldTag.Q1: "1ኛ ሩብዓመት",
    FieldTag.Q2: "2ኛ ሩብዓመት",
    FieldTag.Q3: "3ኛ ሩብዓመት",
    FieldTag.Q4: "4ኛ ሩብዓመት",
    FieldTag.MEASUREMENT: "መለኪያ",
    FieldTag.TEAM: "Team",
}

QUARTER_TAGS: Sequence[FieldTag] = (FieldTag.Q1, FieldTag.Q2, FieldTag.Q3, FieldTag.Q4)

# Values that count as "no value" for quarter/plan fields.
ZERO_LITERALS: frozenset[str] = frozenset({"", "0", "0.0", "0.00"})

# =============================================================================
# Fiscal Calendar
# =============================================================================
# The fiscal year starts on 9 May. Each entry is
# (start_month, start_day, start_year_offset, end_month, end_day, end_year_offset)
# relative to the fiscal year number.
FISCAL_YEAR_START = (5, 9)
QUARTER_CALENDAR: dict[str, tuple[int, int, int, int, int, int]] = {
    "Q1": (5, 9, 0, 10, 10, 0),
    "Q2": (10, 11, 0, 1, 8, 1),
    "Q3": (1, 9, 1, 4, 8, 1),
    "Q4": (4, 9, 1, 7, 7, 1),
}

# Completion-ratio slice owned by each quarter (inclusive).
QUARTER_RATIO_RANGES: dict[str, tuple[int, int]] = {
    "Q1": (0, 25),
    "Q2": (26, 50),
    "Q3": (51, 75),
    "Q4": (76, 100),
}

# =============================================================================
# Progress Status Configuration
# =============================================================================
# Ordered high to low; first threshold met wins.
PROGRESS_STATUS_THRESHOLDS: Sequence[tuple[int, str]] = (
    (95, "Achieved"),
    (85, "On Track"),
    (65, "In Progress"),
    (50, "Weak Performance"),
    (0, "Requires Intervention"),
)

STATUS_BUCKET_LABELS: Sequence[str] = ("Not Started", "In Progress", "Done")

# Canonical column order for performance tables
PERFORMANCE_COLUMNS: Sequence[str] = (
    "item_id",
    "subject",
    "project",
    "assignee",
    "weight",
    "raw_done_ratio",
    "mapped_progress",
    "target_value",
    "actual_value",
    "status",
)


@dataclass(slots=True)
class RedmineSettings:
    server: str = REDMINE_DEFAULT_SERVER
    api_key: str = ""
    timeout: float = REQUEST_TIMEOUT

    @classmethod
    def from_env(cls) -> RedmineSettings:
        """Read connection settings from ``REDMINE_SERVER`` / ``REDMINE_API_KEY``."""
        timeout_raw = os.getenv("REDMINE_TIMEOUT", "")
        try:
            timeout = float(timeout_raw) if timeout_raw else REQUEST_TIMEOUT
        except ValueError:
            timeout = REQUEST_TIMEOUT
        return cls(
            server=os.getenv("REDMINE_SERVER", REDMINE_DEFAULT_SERVER),
            api_key=os.getenv("REDMINE_API_KEY", ""),
            timeout=timeout,
        )


@dataclass(slots=True)
class AppSettings:
    page_limit: int = PAGE_LIMIT
    max_pages: int = MAX_PAGES
    max_workers: int = FETCH_MAX_WORKERS


SETTINGS = AppSettings()
