"""
Tests for promoter.fields: extraction, in-place edits, verification, atomic writes.
"""
import pytest

from conftest import env_values, qa_values
from promoter import fields
from promoter.exceptions import (
    FieldNotFoundError,
    InvalidInputError,
    MissingFileError,
    MutationError,
    PreconditionError,
)

QA_RULESET = {"name": "qa_ruleset", "line": 8, "style": "quoted", "key_path": None}
JOB_STAGE = {"name": "job_stage", "line": 11, "style": "job_stage", "key_path": None}
RULESET_NAME = {"name": "ruleset_name", "line": 25, "style": "bare", "key_path": None}


def test_extract_each_style():
    assert fields.extract(qa_values("rules-v7", "Pre_prod"), QA_RULESET) == "rules-v7"
    assert fields.extract(qa_values("rules-v7", "Pre_prod"), JOB_STAGE) == "Pre_prod"
    assert fields.extract(env_values("rules-v9"), RULESET_NAME) == "rules-v9"


def test_quoted_style_reads_last_key_on_line():
    text = "\n" * 7 + 'labels: {a: "x", file: "rules-v4"}\n'
    assert fields.extract(text, QA_RULESET) == "rules-v4"


def test_line_out_of_range():
    with pytest.raises(FieldNotFoundError, match="cannot read line 25"):
        fields.extract(qa_values(), RULESET_NAME)


def test_line_without_expected_pattern():
    text = qa_values().replace('value: "Prod"', "value: Prod")
    with pytest.raises(FieldNotFoundError, match="line 11"):
        fields.extract(text, JOB_STAGE)


def test_empty_value_is_not_found():
    with pytest.raises(FieldNotFoundError):
        fields.extract(qa_values(ruleset=""), QA_RULESET)


def test_read_field_missing_file(tmp_path):
    with pytest.raises(MissingFileError, match="Stage file not found"):
        fields.read_field(tmp_path / "nope.yaml", RULESET_NAME, "Stage")


def test_read_field_not_utf8(tmp_path):
    path = tmp_path / "stage.yaml"
    path.write_bytes(b"# caf\xff\n" + env_values("rules-v3").encode("utf-8"))

    with pytest.raises(PreconditionError, match="Stage file is not valid UTF-8"):
        fields.read_field(path, RULESET_NAME, "Stage")


def test_render_edit_keeps_rest_of_line():
    new_text = fields.render_edit(env_values("rules-v2"), RULESET_NAME, "rules-v3")
    assert new_text.splitlines()[24] == "  name: rules-v3  # promoted by hand"
    assert new_text == env_values("rules-v3")


def test_render_edit_only_touches_target_line():
    old = qa_values("rules-v1", "Dev")
    new = fields.render_edit(old, JOB_STAGE, "Pre_prod")
    changed = [i for i, (a, b) in enumerate(zip(old.splitlines(), new.splitlines())) if a != b]
    assert changed == [10]
    assert new.splitlines()[10] == '      value: "Pre_prod"'


def test_render_edit_preserves_crlf():
    old = qa_values("rules-v1", "Dev").replace("\n", "\r\n")
    new = fields.render_edit(old, QA_RULESET, "rules-v2")
    assert new == qa_values("rules-v2", "Dev").replace("\n", "\r\n")


@pytest.mark.parametrize("separator", ["\x0c", "\x0b", "\x1c", "\u2028"])
def test_only_newlines_count_as_line_breaks(separator):
    text = env_values("rules-v2").replace("Managed by", f"Managed{separator}by")

    assert fields.extract(text, RULESET_NAME) == "rules-v2"
    new_text = fields.render_edit(text, RULESET_NAME, "rules-v3")
    assert new_text == env_values("rules-v3").replace("Managed by", f"Managed{separator}by")


def test_render_edit_same_value_is_identity():
    text = env_values("rules-v3")
    assert fields.render_edit(text, RULESET_NAME, "rules-v3") == text


def test_render_edit_read_back_mismatch():
    # "a b" would be read back as "a"
    with pytest.raises(MutationError, match="read back 'a'"):
        fields.render_edit(env_values(), RULESET_NAME, "a b")


def test_render_edit_refuses_to_break_yaml():
    with pytest.raises(MutationError, match="invalid YAML"):
        fields.render_edit(env_values(), RULESET_NAME, "[oops")


def test_key_path_locates_by_structure():
    field = {"name": "ruleset_name", "line": 1, "style": "bare", "key_path": "ruleset.name"}
    text = env_values("rules-v2")
    assert fields.extract(text, field) == "rules-v2"
    new_text = fields.render_edit(text, field, "rules-v3")
    assert new_text == env_values("rules-v3")


def test_key_path_into_sequence_keeps_quotes():
    field = {"name": "job_stage", "line": 1, "style": "job_stage", "key_path": "config.env.0.value"}
    new_text = fields.render_edit(qa_values("rules-v1", "Pre_prod"), field, "Prod")
    assert new_text == qa_values("rules-v1", "Prod")


def test_key_path_missing_key():
    field = {"name": "ruleset_name", "line": 1, "style": "bare", "key_path": "ruleset.version"}
    with pytest.raises(FieldNotFoundError, match="ruleset.version"):
        fields.extract(env_values(), field)


@pytest.mark.parametrize("field, value", [
    (QA_RULESET, 'rules"v2'),
    (RULESET_NAME, "rules v2"),
    (RULESET_NAME, "rules#v2"),
    (QA_RULESET, "rules\nv2"),
    (QA_RULESET, ""),
])
def test_validate_value_rejects_line_breaking_values(field, value):
    with pytest.raises(InvalidInputError):
        fields.validate_value(field, value)


def test_write_atomic_replaces_file_and_cleans_up(tmp_path):
    path = tmp_path / "values.yaml"
    path.write_text("name: old\n", encoding="utf-8")
    path.chmod(0o640)

    fields.write_atomic(path, "name: new\n")

    assert path.read_text(encoding="utf-8") == "name: new\n"
    assert path.stat().st_mode & 0o777 == 0o640
    assert [p.name for p in tmp_path.iterdir()] == ["values.yaml"]
