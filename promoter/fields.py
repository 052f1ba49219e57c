"""
Reading and rewriting single scalar fields inside YAML values files.

The files are never re-serialized. A field is located either by its 1-based
line number and a per-style pattern, or by a dotted key path resolved with
PyYAML's composer, and only the characters of the value itself are replaced.
Everything else on the line, and in the file, stays byte for byte the same.
"""
import os
import re
import tempfile
from collections import namedtuple
from pathlib import Path

import yaml

from promoter.exceptions import FieldNotFoundError, InvalidInputError, MissingFileError, MutationError, PreconditionError

# Each pattern captures the text before the value in group 1 and the value in group 2.
PATTERNS = {
    "quoted": re.compile(r'^(.*:[ \t]*")([^"]*)"'),
    "job_stage": re.compile(r'^(.*value:[ \t]*")([^"]*)"'),
    "bare": re.compile(r"^(.*name:[ \t]*)([^\s#]*)"),
}

# Where a value sits: 0-based line index and the column span of the value on it.
Span = namedtuple("Span", ["line", "start", "end", "value"])


def describe(field):
    if field.get("key_path"):
        return f"key '{field['key_path']}'"
    return f"line {field['line']}"


def read_text(path: Path, role="Values"):
    if not path.is_file():
        raise MissingFileError(role, path)
    try:
        with path.open("r", encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise PreconditionError(f"{role} file is not valid UTF-8: {path} (byte {e.start})")


def _split(text):
    """
    Split into (body, ending) pairs so CRLF files come back out unchanged.

    Only a newline ends a line, the way sed and git number lines. str.splitlines
    would also break on form feeds and the Unicode line separators.
    """
    pairs = []
    chunks = text.split("\n")
    for i, chunk in enumerate(chunks):
        ending = "\n" if i < len(chunks) - 1 else ""
        if not chunk and not ending:
            break
        if chunk.endswith("\r"):
            chunk, ending = chunk[:-1], "\r" + ending
        pairs.append((chunk, ending))
    return pairs


def locate(text, field, source="file") -> Span:
    """Find the value span of a field. Raises FieldNotFoundError."""
    if field.get("key_path"):
        return _locate_key_path(text, field, source)

    lines = _split(text)
    index = int(field["line"]) - 1
    if index < 0 or index >= len(lines):
        raise FieldNotFoundError(
            f"{source} has {len(lines)} lines, cannot read line {field['line']}"
        )
    body = lines[index][0]
    match = PATTERNS[field["style"]].search(body)
    if not match or not match.group(2):
        raise FieldNotFoundError(f"Could not extract value from line {field['line']} of {source}")
    return Span(index, match.start(2), match.end(2), match.group(2))


def _locate_key_path(text, field, source):
    try:
        node = yaml.compose(text)
    except yaml.YAMLError as e:
        raise FieldNotFoundError(f"{source} is not valid YAML: {e}")

    for part in field["key_path"].split("."):
        if isinstance(node, yaml.MappingNode):
            node = next((v for k, v in node.value if getattr(k, "value", None) == part), None)
        elif isinstance(node, yaml.SequenceNode) and part.isdigit() and int(part) < len(node.value):
            node = node.value[int(part)]
        else:
            node = None
        if node is None:
            raise FieldNotFoundError(f"Key '{field['key_path']}' not found in {source}")

    if not isinstance(node, yaml.ScalarNode) or not node.value:
        raise FieldNotFoundError(f"Key '{field['key_path']}' in {source} is not a non-empty scalar")
    if node.start_mark.line != node.end_mark.line or node.style not in (None, '"', "'"):
        raise FieldNotFoundError(f"Key '{field['key_path']}' in {source} spans more than one line")

    quote = node.style or ""
    start = node.start_mark.column + len(quote)
    end = node.end_mark.column - len(quote)
    body = _split(text)[node.start_mark.line][0]
    if body[start:end] != node.value:
        # Escaped or folded scalars: the text on the line is not the plain value.
        raise FieldNotFoundError(f"Key '{field['key_path']}' in {source} uses escapes, cannot edit in place")
    return Span(node.start_mark.line, start, end, node.value)


def extract(text, field, source="file"):
    return locate(text, field, source).value


def read_field(path: Path, field, role="Values"):
    """Read the live value of a field from a file on disk."""
    return extract(read_text(path, role), field, path)


def validate_value(field, value, label="Value"):
    """Refuse values that would break the line they are written into."""
    if not value:
        raise InvalidInputError(f"{label} cannot be empty")
    if "\n" in value or "\r" in value:
        raise InvalidInputError(f"{label} must be a single line")
    if field["style"] in ("quoted", "job_stage") and '"' in value:
        raise InvalidInputError(f"{label} cannot contain double quotes: {value}")
    if field["style"] == "bare" and re.search(r"[\s#]", value):
        raise InvalidInputError(f"{label} cannot contain whitespace or '#': {value}")
    if field.get("key_path") and "'" in value:
        raise InvalidInputError(f"{label} cannot contain single quotes: {value}")
    return value


def render_edit(text, field, new_value, source="file"):
    """
    Return the text with the field set to new_value.

    The result is checked before it is handed back: only the target line may
    differ, the field must read back as exactly new_value, and a document that
    parsed as YAML before must still parse. Any failure raises MutationError
    and the caller is left with the untouched original.
    """
    span = locate(text, field, source)
    lines = _split(text)
    body, ending = lines[span.line]
    lines[span.line] = (body[:span.start] + new_value + body[span.end:], ending)
    new_text = "".join(b + e for b, e in lines)

    try:
        written = extract(new_text, field, source)
    except FieldNotFoundError as e:
        raise MutationError(f"Failed to update {describe(field)} of {source}: {e.message}")
    if written != new_value:
        raise MutationError(
            f"Failed to update {describe(field)} of {source}: expected '{new_value}', read back '{written}'"
        )

    old_lines = [body for body, _ in _split(text)]
    new_lines = [body for body, _ in _split(new_text)]
    changed = [i for i, (a, b) in enumerate(zip(old_lines, new_lines)) if a != b]
    if len(old_lines) != len(new_lines) or changed not in ([], [span.line]):
        raise MutationError(f"Update of {describe(field)} of {source} touched other lines")

    if _parses(text) and not _parses(new_text):
        raise MutationError(f"Update of {describe(field)} of {source} produced invalid YAML")
    return new_text


def _parses(text):
    try:
        for _ in yaml.safe_load_all(text):
            pass
    except yaml.YAMLError:
        return False
    return True


def write_atomic(path: Path, text):
    """Write to a temp file beside path, then rename it over path."""
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
