"""
Reporting and Export Module
"""
from .console import render_dashboard, render_report
from .exporters import ResultExporter

__all__ = [
    "render_dashboard",
    "render_report",
    "ResultExporter",
]
