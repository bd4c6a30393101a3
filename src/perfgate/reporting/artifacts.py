"""
Writes the four pipeline artifacts into the report directory.
"""

from pathlib import Path
from typing import Callable, Dict, Union

from loguru import logger

from perfgate.core.models import PipelineResult
from perfgate.reporting.exporters import export_json, export_junit_xml, export_prometheus
from perfgate.reporting.summary import render_summary

ARTIFACTS: Dict[str, Callable[[PipelineResult], str]] = {
    "performance-summary.md": render_summary,
    "performance-results.xml": export_junit_xml,
    "performance-data.json": export_json,
    "performance-metrics.prom": export_prometheus,
}


class ArtifactWriter:
    def __init__(self, output_dir: Union[str, Path] = "."):
        self.output_dir = Path(output_dir)

    def write(self, result: PipelineResult) -> Dict[str, str]:
        """
        Render and write every artifact.

        Returns a mapping of artifact name to written path. Raises OSError
        if the directory or a file cannot be written.
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        written: Dict[str, str] = {}
        for name, render in ARTIFACTS.items():
            path = self.output_dir / name
            path.write_text(render(result), encoding="utf-8")
            written[name] = str(path)
        logger.info(f"Wrote {len(written)} performance artifacts to {self.output_dir}")
        return written
