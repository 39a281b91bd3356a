"""Renders a BatchReport as JSON, CSV or a plain-text table."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from launchscript.models import BatchReport

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("JSON", "CSV", "Table")

# Column order of the tabular formats; keys match the JSON result entries
RESULT_COLUMNS = ["AppName", "IsInstalled", "DisplayName", "Version", "Publisher",
                  "InstallLocation", "InstallDate", "Source", "Error"]


def result_rows(report: BatchReport) -> List[Dict[str, Any]]:
    rows = []
    for result in report.results:
        status = result.status
        rows.append({
            "AppName": result.app_id,
            "IsInstalled": status.is_installed,
            "DisplayName": status.display_name,
            "Version": status.version,
            "Publisher": status.publisher,
            "InstallLocation": status.install_location,
            "InstallDate": status.install_date,
            "Source": status.source.value if status.source else None,
            "Error": status.error,
        })
    return rows


def to_payload(report: BatchReport) -> Dict[str, Any]:
    """The JSON document shape read by the web bridge (TotalApps, InstalledCount, Results...)."""
    return {
        "Timestamp": report.timestamp,
        "TotalApps": report.total_apps,
        "InstalledCount": report.installed_count,
        "NotInstalledCount": report.not_installed_count,
        "Results": result_rows(report),
    }


def to_json(report: BatchReport, indent: Optional[int] = 2) -> str:
    return json.dumps(to_payload(report), indent=indent, ensure_ascii=False)


def to_dataframe(report: BatchReport) -> pd.DataFrame:
    return pd.DataFrame(result_rows(report), columns=RESULT_COLUMNS)


def to_csv(report: BatchReport) -> str:
    return to_dataframe(report).to_csv(index=False, lineterminator='\n')


def to_table(report: BatchReport) -> str:
    df = to_dataframe(report)[["AppName", "IsInstalled", "Version", "Source", "Error"]]
    if df.empty:
        body = "No applications checked."
    else:
        body = df.fillna("").to_string(index=False)
    summary = (f"Total: {report.total_apps}  Installed: {report.installed_count}  "
               f"Not installed: {report.not_installed_count}  ({report.timestamp})")
    return f"{body}\n\n{summary}"


def render(report: BatchReport, output_format: str = "JSON") -> str:
    fmt = output_format.lower()
    if fmt == "json":
        return to_json(report)
    if fmt == "csv":
        return to_csv(report)
    if fmt == "table":
        return to_table(report)
    raise ValueError(f"Unsupported output format '{output_format}' (expected one of {', '.join(OUTPUT_FORMATS)})")


def write_report(report: BatchReport, path: Union[str, Path], output_format: str = "JSON") -> Path:
    """Writes the rendered report to `path`, creating parent directories."""
    out_path = Path(path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, 'w', encoding='utf-8', newline='') as f:
        f.write(render(report, output_format))
    logger.info(f"Saved {output_format} report for {report.total_apps} application(s) to {out_path}")
    return out_path
