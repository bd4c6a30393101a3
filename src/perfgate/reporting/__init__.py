from perfgate.reporting.artifacts import ARTIFACTS, ArtifactWriter
from perfgate.reporting.exporters import export_json, export_junit_xml, export_prometheus, to_json_document
from perfgate.reporting.period_report import generate_performance_report
from perfgate.reporting.summary import render_summary

__all__ = [
    "ARTIFACTS",
    "ArtifactWriter",
    "export_json",
    "export_junit_xml",
    "export_prometheus",
    "to_json_document",
    "generate_performance_report",
    "render_summary",
]
