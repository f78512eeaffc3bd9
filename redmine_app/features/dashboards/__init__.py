"""Dashboard view models built from loaded departments, teams and plans."""

from redmine_app.features.dashboards.context import (
    ExecutiveContext,
    MinisterContext,
    PlanContext,
    build_executive_context,
    build_minister_context,
    build_plan_context,
)

__all__ = [
    "ExecutiveContext",
    "MinisterContext",
    "PlanContext",
    "build_executive_context",
    "build_minister_context",
    "build_plan_context",
]
