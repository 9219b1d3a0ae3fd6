"""
HTML report of one or more case studies.

The report is a single self-contained file: tables are rendered with
``DataFrame.to_html`` and figures are embedded as base64 PNG.
"""

import base64
import html
import re
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import pandas as pd
from matplotlib.figure import Figure

from ._logging import get_logger
from .case_studies import CaseStudy

log = get_logger(__name__)

_STYLE = """
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            max-width: 1100px;
            margin: 0 auto;
            padding: 20px;
            background-color: #f5f5f5;
            color: #333;
        }
        h1 { border-bottom: 2px solid #4a90a4; padding-bottom: 10px; }
        h2 { color: #4a90a4; margin-top: 30px; }
        .section {
            background: white;
            border-radius: 8px;
            padding: 20px;
            margin: 20px 0;
            box-shadow: 0 2px 4px rgba(0,0,0,0.1);
        }
        .note { background: #fff8e1; border-left: 4px solid #f0b400; padding: 10px 15px; }
        table.dataframe { border-collapse: collapse; margin: 10px 0; font-size: 0.9em; }
        table.dataframe th, table.dataframe td { border: 1px solid #ddd; padding: 4px 8px; text-align: right; }
        table.dataframe th { background: #4a90a4; color: white; }
        img { max-width: 100%; }
        .caption { font-style: italic; color: #666; }
"""


def _fig_to_base64(fig: Figure, dpi: int = 110) -> str:
    """Convert matplotlib figure to base64 PNG string."""
    buf = BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight")
    buf.seek(0)
    return base64.b64encode(buf.read()).decode("utf-8")


def _format_number(x) -> str:
    if isinstance(x, (float, np.floating)):
        if np.isnan(x):
            return "NA"
        if x != 0 and (abs(x) < 1e-3 or abs(x) >= 1e5):
            return f"{x:.3e}"
        return f"{x:.4f}"
    return str(x)


def _table_html(df: pd.DataFrame) -> str:
    return df.to_html(float_format=_format_number, na_rep="NA", classes="dataframe")


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


class Report:
    """
    Collects case studies and writes them as one HTML page.

    Examples
    --------
    >>> report = Report('GLMs for positive continuous data')
    >>> report.add_note('Data are simulated.')
    >>> report.add(run_lime(simulate_lime()))
    >>> report.write('reports/positive_glms.html')
    """

    def __init__(self, title: str = 'GLMs for positive continuous data'):
        self.title = title
        self.notes: List[str] = []
        self.case_studies: List[CaseStudy] = []

    def add(self, study: CaseStudy) -> 'Report':
        self.case_studies.append(study)
        return self

    def add_note(self, text: str) -> 'Report':
        self.notes.append(text)
        return self

    def render(self, dpi: int = 110) -> str:
        """Render the report as an HTML string."""
        parts = [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '    <meta charset="UTF-8">',
            f"    <title>{html.escape(self.title)}</title>",
            f"    <style>{_STYLE}    </style>",
            "</head>",
            "<body>",
            f"    <h1>{html.escape(self.title)}</h1>",
            f"    <p>Generated: {datetime.now().strftime('%Y-%m-%d %H:%M')}</p>",
        ]
        for note in self.notes:
            parts.append(f'    <p class="note">{html.escape(note)}</p>')

        for study in self.case_studies:
            parts.append('    <div class="section">')
            parts.append(f"        <h2>{html.escape(study.title)}</h2>")
            for section in study.sections:
                if section.title:
                    parts.append(f"        <h3>{html.escape(section.title)}</h3>")
                if section.kind == 'text':
                    parts.append(f"        <p>{html.escape(section.content)}</p>")
                elif section.kind == 'table':
                    parts.append(_table_html(section.content))
                else:
                    img = _fig_to_base64(section.content, dpi=dpi)
                    alt = html.escape(section.title or section.caption or 'figure')
                    parts.append(f'        <img src="data:image/png;base64,{img}" alt="{alt}">')
                if section.caption:
                    parts.append(f'        <p class="caption">{html.escape(section.caption)}</p>')
            parts.append("    </div>")

        parts += ["</body>", "</html>", ""]
        return "\n".join(parts)

    def save_figures(self, directory: Union[str, Path], dpi: int = 110) -> List[Path]:
        """Write every figure as a PNG file; returns the paths."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for study in self.case_studies:
            prefix = _slug(study.title)
            for i, fig in enumerate(study.figures, start=1):
                path = directory / f"{prefix}_{i:02d}.png"
                fig.savefig(path, dpi=dpi, bbox_inches="tight")
                paths.append(path)
        log.info("saved figures", directory=str(directory), count=len(paths))
        return paths

    def write(
        self,
        path: Union[str, Path],
        dpi: int = 110,
        save_figures: bool = False,
        figure_dir: Optional[Union[str, Path]] = None,
    ) -> Path:
        """
        Write the HTML report.

        Parameters
        ----------
        path : str or Path
            Output file
        dpi : int
            Figure resolution
        save_figures : bool
            Also write PNG files
        figure_dir : str or Path, optional
            Where PNG files go (default: ``<report stem>_figures`` next to the report)

        Returns
        -------
        Path
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(dpi=dpi), encoding="utf-8")
        if save_figures:
            self.save_figures(figure_dir or path.parent / f"{path.stem}_figures", dpi=dpi)
        log.info("report written", path=str(path), case_studies=len(self.case_studies))
        return path

    def close(self):
        """Release the figures of all case studies."""
        for study in self.case_studies:
            study.close()


__all__ = ["Report"]
