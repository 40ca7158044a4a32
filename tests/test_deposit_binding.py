"""Tests for the deposit binding recorded in myst.yml."""

import csv

import pytest
import yaml

from deposit_errors import InputError
from deposit_tasks import (
    deposit_url,
    read_deposit_binding,
    save_result_csv,
    write_deposit_binding,
)
from models.zenodo import PersistedResult
from myst_project import load_article

CONFIG = """\
# MyST project
version: 1
project:
  title: Example Title
  venue:
    title: Example Conference
site:
  template: article-theme
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "myst.yml"
    path.write_text(CONFIG, encoding="utf-8")
    return path


class TestReadDepositBinding:
    def test_no_config_file(self):
        assert read_deposit_binding(None) is None

    def test_unbound_project(self, config_file):
        assert read_deposit_binding(str(config_file)) is None

    def test_production_url(self, tmp_path):
        path = tmp_path / "myst.yml"
        path.write_text("project:\n  zenodo: https://zenodo.org/deposit/123\n", encoding="utf-8")
        binding = read_deposit_binding(str(path))
        assert binding.deposit_id == 123
        assert binding.sandbox is False

    def test_sandbox_url_with_trailing_slash(self, tmp_path):
        path = tmp_path / "myst.yml"
        path.write_text(
            "project:\n  zenodo: https://sandbox.zenodo.org/deposit/456/\n", encoding="utf-8"
        )
        binding = read_deposit_binding(str(path))
        assert binding.deposit_id == 456
        assert binding.sandbox is True

    def test_non_numeric_id_raises(self, tmp_path):
        path = tmp_path / "myst.yml"
        path.write_text("project:\n  zenodo: https://zenodo.org/records/abc\n", encoding="utf-8")
        with pytest.raises(InputError):
            read_deposit_binding(str(path))


class TestWriteDepositBinding:
    def test_inserts_after_project_line(self, config_file):
        assert write_deposit_binding(str(config_file), 789) is True

        lines = config_file.read_text(encoding="utf-8").split("\n")
        assert lines[2] == "project:"
        assert lines[3] == "  zenodo: https://zenodo.org/deposit/789"
        assert lines[0] == "# MyST project"
        assert "site:" in lines

        config = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        assert config["project"]["title"] == "Example Title"
        assert config["site"]["template"] == "article-theme"

    def test_round_trips_through_read(self, config_file):
        write_deposit_binding(str(config_file), 789, sandbox=True)
        binding = read_deposit_binding(str(config_file))
        assert binding.deposit_id == 789
        assert binding.sandbox is True
        assert binding.url == deposit_url(789, sandbox=True)

    def test_reuses_block_indentation(self, tmp_path):
        path = tmp_path / "myst.yml"
        path.write_text("project:\n    title: Four spaces\n", encoding="utf-8")
        write_deposit_binding(str(path), 1)
        assert path.read_text(encoding="utf-8").split("\n")[1] == "    zenodo: https://zenodo.org/deposit/1"
        assert yaml.safe_load(path.read_text(encoding="utf-8"))["project"]["zenodo"].endswith("/1")

    def test_existing_binding_is_kept(self, tmp_path):
        path = tmp_path / "myst.yml"
        original = "project:\n  zenodo: https://zenodo.org/deposit/5\n"
        path.write_text(original, encoding="utf-8")
        assert write_deposit_binding(str(path), 6) is False
        assert path.read_text(encoding="utf-8") == original

    def test_missing_project_key_is_appended(self, tmp_path):
        path = tmp_path / "myst.yml"
        path.write_text("version: 1\n\n", encoding="utf-8")
        assert write_deposit_binding(str(path), 7) is True
        config = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert config == {"version": 1, "project": {"zenodo": "https://zenodo.org/deposit/7"}}

    def test_flow_style_project_keeps_its_keys(self, tmp_path):
        path = tmp_path / "myst.yml"
        path.write_text(
            "version: 1\nproject: {title: Kept Title, venue: {title: Proc X}}\n", encoding="utf-8"
        )
        (tmp_path / "index.md").write_text("# Abstract\n\nText.\n", encoding="utf-8")

        assert write_deposit_binding(str(path), 9) is True

        config = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert config["project"] == {
            "title": "Kept Title",
            "venue": {"title": "Proc X"},
            "zenodo": "https://zenodo.org/deposit/9",
        }
        assert read_deposit_binding(str(path)).deposit_id == 9
        article = load_article(tmp_path / "index.md", path)
        assert article.frontmatter.title == "Kept Title"
        assert article.frontmatter.venue.title == "Proc X"

    def test_without_config_file(self):
        assert write_deposit_binding(None, 7) is False


class TestSaveResultCsv:
    def test_appends_rows_with_single_header(self, tmp_path):
        results = tmp_path / "out" / "results.csv"
        save_result_csv(str(results), PersistedResult(source_file="a.md", id=1, files=2))
        save_result_csv(str(results), PersistedResult(source_file="b.md", id=2, files=0))

        with open(results, newline="", encoding="utf-8") as fh:
            rows = list(csv.DictReader(fh))
        assert [row["source_file"] for row in rows] == ["a.md", "b.md"]
        assert rows[0]["files"] == "2"

    def test_empty_path_raises(self):
        with pytest.raises(ValueError):
            save_result_csv("", PersistedResult())
