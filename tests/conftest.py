"""Shared fixtures for zenodo_deposit tests."""

from pathlib import Path
from typing import Any, Dict, Optional

import pytest
import yaml

from models.myst import ArticleContext, Frontmatter

ABSTRACT_BODY = """
# Abstract

We deposit conference papers on Zenodo.

# Introduction

Papers are written in MyST {cite}`smith2020`.
"""

BIBLIOGRAPHY = """
@article{smith2020,
  title = {Depositing Papers},
  author = {Smith, John},
  journal = {Journal of Examples},
  year = {2020},
  doi = {https://doi.org/10.1000/example.2020}
}
"""


@pytest.fixture
def make_article(tmp_path):
    """Factory fixture for articles built straight from frontmatter."""

    def _make_article(
        abstract: Optional[str] = "We deposit conference papers on Zenodo.",
        dois: Optional[Dict[str, str]] = None,
        config_file: Optional[str] = None,
        source_file: str = "index.md",
        **frontmatter: Any,
    ) -> ArticleContext:
        data: Dict[str, Any] = {
            "title": "Example Title",
            "authors": [{"name": "Jane Doe", "affiliations": ["zen"]}],
            "affiliations": [{"id": "zen", "name": "Zenodo"}],
        }
        data.update(frontmatter)
        return ArticleContext(
            frontmatter=Frontmatter.model_validate(data),
            abstract=abstract,
            dois=dois or {},
            source_file=str(tmp_path / source_file),
            config_file=config_file,
            project_dir=str(tmp_path),
        )

    return _make_article


@pytest.fixture
def make_project(tmp_path):
    """Factory fixture writing a MyST project with ``myst.yml`` and ``index.md``."""

    def _make_project(
        name: str = "paper",
        project: Optional[Dict[str, Any]] = None,
        page: Optional[Dict[str, Any]] = None,
        body: str = ABSTRACT_BODY,
        bibliography: Optional[str] = BIBLIOGRAPHY,
    ) -> Path:
        project_dir = tmp_path / name
        project_dir.mkdir(parents=True, exist_ok=True)

        if project is None:
            project = {
                "title": "Example Title",
                "authors": [{"id": "jdoe", "name": "Jane Doe", "affiliations": ["zen"]}],
                "affiliations": [{"id": "zen", "name": "Zenodo"}],
                "venue": {"title": "Example Conference", "short_title": "ExConf 2024"},
            }
        config = {"version": 1, "project": project}
        (project_dir / "myst.yml").write_text(
            yaml.safe_dump(config, sort_keys=False), encoding="utf-8"
        )

        content = body
        if page:
            content = f"---\n{yaml.safe_dump(page, sort_keys=False)}---\n{body}"
        (project_dir / "index.md").write_text(content, encoding="utf-8")

        if bibliography is not None:
            (project_dir / "main.bib").write_text(bibliography, encoding="utf-8")

        return project_dir

    return _make_project
