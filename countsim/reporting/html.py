from __future__ import annotations

import html
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import pandas as pd


_SLUG_RE = re.compile(r"[^0-9a-zA-Z]+")

_STYLE = """
body { font-family: -apple-system, "Segoe UI", Helvetica, Arial, sans-serif; max-width: 1000px;
       margin: 2em auto; padding: 0 1em; color: #222; line-height: 1.5; }
nav.toc { border: 1px solid #ddd; background: #fafafa; padding: 0.5em 1.5em; margin-bottom: 2em; }
table.dataframe { border-collapse: collapse; margin: 1em 0; font-size: 0.9em; }
table.dataframe th, table.dataframe td { border: 1px solid #ccc; padding: 0.25em 0.6em; text-align: right; }
table.dataframe th { background: #f0f0f0; }
figure { margin: 1em 0; }
figure img { max-width: 100%; }
figcaption { font-size: 0.9em; color: #555; }
footer { margin-top: 3em; font-size: 0.8em; color: #777; }
"""


def slugify(text: str) -> str:
    return _SLUG_RE.sub("-", text).strip("-").lower() or "section"


@dataclass
class Section:
    title: str
    blocks: List[str] = field(default_factory=list)
    anchor: Optional[str] = None

    def __post_init__(self) -> None:
        if self.anchor is None:
            self.anchor = slugify(self.title)

    def text(self, paragraph: str) -> "Section":
        self.blocks.append(f"<p>{html.escape(paragraph)}</p>")
        return self

    def table(self, df: pd.DataFrame, caption: Optional[str] = None, float_format: str = "{:.4f}") -> "Section":
        if caption:
            self.blocks.append(f"<p><strong>{html.escape(caption)}</strong></p>")
        self.blocks.append(
            df.to_html(index=False, border=0, na_rep="", float_format=float_format.format, escape=True)
        )
        return self

    def figure(self, png_base64: str, caption: Optional[str] = None) -> "Section":
        cap = f"<figcaption>{html.escape(caption)}</figcaption>" if caption else ""
        alt = html.escape(caption or self.title)
        self.blocks.append(
            f'<figure><img src="data:image/png;base64,{png_base64}" alt="{alt}"/>{cap}</figure>'
        )
        return self


def _toc(sections: List[Section]) -> str:
    items = "\n".join(
        f'<li><a href="#{s.anchor}">{i}. {html.escape(s.title)}</a></li>' for i, s in enumerate(sections, 1)
    )
    return f'<nav class="toc"><h2>Contents</h2><ol>\n{items}\n</ol></nav>'


def build_html_report(title: str, sections: List[Section], subtitle: Optional[str] = None) -> str:
    anchors = [s.anchor for s in sections]
    dupes = sorted({a for a in anchors if anchors.count(a) > 1})
    if dupes:
        raise ValueError(f"Duplicate section anchors: {dupes}")

    body = []
    for i, s in enumerate(sections, 1):
        body.append(f'<section id="{s.anchor}">\n<h2>{i}. {html.escape(s.title)}</h2>')
        body.extend(s.blocks)
        body.append("</section>")

    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    sub = f'<p class="subtitle">{html.escape(subtitle)}</p>' if subtitle else ""
    return "\n".join(
        [
            "<!DOCTYPE html>",
            '<html lang="en">',
            "<head>",
            '<meta charset="utf-8"/>',
            f"<title>{html.escape(title)}</title>",
            f"<style>{_STYLE}</style>",
            "</head>",
            "<body>",
            f"<h1>{html.escape(title)}</h1>",
            sub,
            _toc(sections),
            *body,
            f"<footer>Generated {generated}</footer>",
            "</body>",
            "</html>",
        ]
    )


def render_html_report(title: str, sections: List[Section], path: Path, subtitle: Optional[str] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_html_report(title, sections, subtitle=subtitle), encoding="utf-8")
    return path
