"""
zoneHealth Reporting Module
===========================

Report generation for health check results.

Components:
- report_builder.py: JSON report persistence and text rendering
"""

from .report_builder import ReportBuilder, generate_text_report
