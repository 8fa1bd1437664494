"""Sprint report feature: merges all analytics into one report mapping."""

from azure_pm.features.sprint_report.context import SprintReport, build_sprint_report

__all__ = ["SprintReport", "build_sprint_report"]
