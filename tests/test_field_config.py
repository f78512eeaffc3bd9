from pathlib import Path

import pytest

from redmine_app.core import field_config
from redmine_app.core.config import DEFAULT_FIELD_NAMES, FieldTag


@pytest.fixture(autouse=True)
def _restore_field_names():
    yield
    field_config.load_field_names(Path(__file__).resolve().parent / "missing", reload=True)


def test_defaults_without_yaml(tmp_path):
    names = field_config.load_field_names(tmp_path, reload=True)
    assert names == DEFAULT_FIELD_NAMES


def test_yaml_overrides(tmp_path):
    (tmp_path / "fields.yaml").write_text(
        "fields:\n  weight: Weight\n  Q1: First quarter\n  bogus: ignored\n", encoding="utf-8"
    )
    names = field_config.load_field_names(tmp_path, reload=True)
    assert names[FieldTag.WEIGHT] == "Weight"
    assert names[FieldTag.Q1] == "First quarter"
    assert names[FieldTag.Q2] == DEFAULT_FIELD_NAMES[FieldTag.Q2]
    assert field_config.field_name(FieldTag.WEIGHT) == "Weight"
    assert field_config.tag_for_name("First quarter") is FieldTag.Q1


def test_unreadable_yaml_falls_back(tmp_path):
    (tmp_path / "fields.yaml").write_text("fields: [unclosed\n", encoding="utf-8")
    names = field_config.load_field_names(tmp_path, reload=True)
    assert names == DEFAULT_FIELD_NAMES


def test_tag_for_unknown_name():
    assert field_config.tag_for_name("Region") is None
    assert field_config.tag_for_name(None) is None
