import pandas as pd
import pytest

from countsim.reporting.html import Section, build_html_report, render_html_report, slugify


def test_toc_links_every_section(tmp_path):
    a = Section("Simulation setup").text("x ~ N(0, 1) & y < 5")
    b = Section("Pseudo-R²").table(pd.DataFrame({"model": ["poisson"], "nagelkerke": [0.5]}))
    out = render_html_report("Report", [a, b], tmp_path / "r.html")

    doc = out.read_text(encoding="utf-8")
    assert 'class="toc"' in doc
    assert f'href="#{a.anchor}"' in doc and f'id="{a.anchor}"' in doc
    assert f'href="#{b.anchor}"' in doc and f'id="{b.anchor}"' in doc
    assert "x ~ N(0, 1) &amp; y &lt; 5" in doc
    assert "0.5000" in doc


def test_duplicate_anchors_are_rejected():
    with pytest.raises(ValueError):
        build_html_report("Report", [Section("Fits"), Section("fits")])


def test_figure_is_embedded():
    s = Section("Figures").figure("AAAA", caption="A caption")
    doc = build_html_report("Report", [s])
    assert 'src="data:image/png;base64,AAAA"' in doc
    assert "<figcaption>A caption</figcaption>" in doc


def test_slugify():
    assert slugify("Parameter recovery") == "parameter-recovery"
    assert slugify("!!!") == "section"
