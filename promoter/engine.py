"""
Shared promotion engine: every workflow is checks + edits + naming.

Nothing is mutated until the operator has seen the diff and confirmed it.
build_plan only reads; apply_plan creates the branch, writes, commits and pushes.
"""
import difflib
from pathlib import Path

import click

from promoter import fields, git
from promoter.config import FILE_LABELS
from promoter.exceptions import InvalidInputError, MissingFileError, PlanChangedError, PreconditionError
from promoter.output import print_info, print_rule, print_success, print_warning
from promoter.utils import relative_to, require_value
from promoter.workflows import FIELD_LABELS, WORKFLOWS, branch_name, commit_message

YES = ("y", "yes")
NO = ("n", "no")


def resolve_field(config, ref):
    """Turn a (field, role) reference into (field spec, path, label)."""
    name, role = ref
    field = dict(config["fields"][name], name=name)
    path = config["paths"][role]
    label = f"{FILE_LABELS[role]} file {FIELD_LABELS[name]} ({fields.describe(field)})"
    return field, path, label


def read_ref(config, ref):
    field, path, _ = resolve_field(config, ref)
    return fields.read_field(path, field, FILE_LABELS[ref[1]])


def check_files(config, workflow):
    for role in workflow["files"]:
        path = config["paths"][role]
        if not path.is_file():
            raise MissingFileError(FILE_LABELS[role], path)


def run_checks(config, workflow, announce=True):
    """Evaluate the read-only preconditions. Raises PreconditionError on the first failure."""
    for check in workflow["checks"]:
        if check["kind"] == "equals":
            _, _, label = resolve_field(config, check["field"])
            actual = read_ref(config, check["field"])
            if announce:
                print_info(f"{label}: {actual}")
            if actual != check["expected"]:
                message = f"{label} must be '{check['expected']}' but found: {actual}"
                if check.get("hint"):
                    message += f". {check['hint']}"
                raise PreconditionError(message)
            if announce:
                print_success(f"{label} is correctly set to: {actual}")

        elif check["kind"] == "match":
            _, _, left_label = resolve_field(config, check["left"])
            _, _, right_label = resolve_field(config, check["right"])
            left = read_ref(config, check["left"])
            right = read_ref(config, check["right"])
            if announce:
                print_info(f"{left_label}: {left}")
                print_info(f"{right_label}: {right}")
            if left != right:
                raise PreconditionError(
                    f"Ruleset values don't match! {left_label}: {left}, {right_label}: {right}"
                )
            if announce:
                print_success(f"Ruleset values match: {left}")

        else:
            raise ValueError(f"Unknown check kind: {check['kind']}")


def validate_inputs(config, workflow, inputs):
    """Check operator-supplied edit values before anything else runs."""
    for edit in workflow["edits"]:
        if "input" in edit["value"]:
            field, _, label = resolve_field(config, edit["target"])
            fields.validate_value(field, inputs[edit["value"]["input"]], label)


def _edit_value(config, edit, inputs):
    value = edit["value"]
    if "literal" in value:
        return value["literal"]
    if "input" in value:
        return inputs[value["input"]]
    return read_ref(config, value["copy"])


def build_plan(repo_path: Path, config, name, inputs, announce=True):
    """
    Compute every change a workflow would make, without touching anything.

    Returns a dict with the branch, the ticket and one entry per file whose
    text would change. An empty "changes" list means there is
    nothing to promote.
    """
    workflow = WORKFLOWS[name]
    check_files(config, workflow)
    run_checks(config, workflow, announce)

    originals = {}
    texts = {}
    edits = {}
    for edit in workflow["edits"]:
        field, path, label = resolve_field(config, edit["target"])
        new_value = fields.validate_value(field, _edit_value(config, edit, inputs), label)
        if path not in texts:
            originals[path] = fields.read_text(path, FILE_LABELS[edit["target"][1]])
            texts[path] = originals[path]
            edits[path] = []
        current = fields.extract(texts[path], field, path)
        if announce:
            print_info(f"Current {label}: {current}")
        if current == new_value:
            continue
        if announce:
            print_info(f"{FIELD_LABELS[field['name']]} needs update: {current} -> {new_value}")
        texts[path] = fields.render_edit(texts[path], field, new_value, path)
        edits[path].append((label, current, new_value))

    changes = []
    for path, new_text in texts.items():
        if not edits[path]:
            continue
        changes.append({
            "path": path,
            "relpath": relative_to(repo_path, path),
            "old_text": originals[path],
            "new_text": new_text,
            "edits": edits[path],
        })

    return {
        "workflow": name,
        "branch": branch_name(name, inputs["ticket"]),
        "ticket": inputs["ticket"],
        "changes": changes,
    }


def plan_diff(plan):
    lines = []
    for change in plan["changes"]:
        lines.extend(difflib.unified_diff(
            change["old_text"].splitlines(keepends=True),
            change["new_text"].splitlines(keepends=True),
            fromfile=f"a/{change['relpath']}",
            tofile=f"b/{change['relpath']}",
        ))
    return "".join(line if line.endswith("\n") else line + "\n" for line in lines)


def show_plan(plan):
    print_info("Planned changes:")
    print_rule()
    for line in plan_diff(plan).splitlines():
        if line.startswith(("+++", "---")):
            click.secho(line, bold=True)
        elif line.startswith("+"):
            click.secho(line, fg="green")
        elif line.startswith("-"):
            click.secho(line, fg="red")
        elif line.startswith("@@"):
            click.secho(line, fg="cyan")
        else:
            click.echo(line)
    print_rule()


def parse_answer(answer):
    """Map a yes/no answer to a bool. Anything else is an input error."""
    normalized = (answer or "").strip().lower()
    if normalized in YES:
        return True
    if normalized in NO:
        return False
    raise InvalidInputError("Invalid input. Please enter 'yes' or 'no'")


def confirm(message, answer=None):
    if answer is None:
        answer = click.prompt(f"{message} (yes/no)", default="", show_default=False, prompt_suffix=": ")
    return parse_answer(answer)


def _same_edits(approved, current):
    def summary(plan):
        return [(c["relpath"], c["edits"]) for c in plan["changes"]]
    return summary(approved) == summary(current)


def apply_plan(repo_path: Path, config, plan, inputs, change_request=None):
    """Create or reuse the branch, write the approved changes, commit and push."""
    name = plan["workflow"]
    remote = config["remote"]
    git.resolve_branch(repo_path, plan["branch"], remote)

    # The ticket branch may have moved on from the base the operator reviewed.
    current = build_plan(repo_path, config, name, inputs, announce=False)
    if not current["changes"]:
        print_warning(f"Branch {plan['branch']} already has the requested values. Nothing to commit.")
        return False
    if not _same_edits(plan, current):
        raise PlanChangedError(
            f"Branch {plan['branch']} differs from what was reviewed. Run the command again to review the new diff."
        )

    for change in current["changes"]:
        fields.write_atomic(change["path"], change["new_text"])
        for label, _, new in change["edits"]:
            print_success(f"Updated {label}: {new}")

    paths = [change["path"] for change in current["changes"]]
    git.show_diff(repo_path, paths)

    message = commit_message(name, plan["ticket"], change_request)
    print_info("Adding and committing changes...")
    git.commit(repo_path, paths, message)
    print_success(f"Committed changes with message: {message}")

    print_info("Pushing commit to remote repository...")
    git.push(repo_path, plan["branch"], remote)
    print_success(f"Successfully pushed branch: {plan['branch']}")
    print_info("You can now create a pull request for this branch")
    return True


def promote(repo_path: Path, config, name, inputs, assume_yes=False, change_request=None, dry_run=False):
    """
    Run one workflow end to end. Returns True when a commit was pushed.

    assume_yes and change_request pre-answer the confirmation and CMR-ID prompts.
    """
    workflow = WORKFLOWS[name]

    # Fail on broken preconditions, and stop on a no-op, before the base branch is touched.
    check_files(config, workflow)
    validate_inputs(config, workflow, inputs)
    preflight = build_plan(repo_path, config, name, inputs, announce=False)
    if not preflight["changes"]:
        print_warning("No update needed. Files already have the requested values.")
        return False

    if not dry_run:
        git.checkout_base(repo_path, config["base_branches"][name], config["remote"])
    plan = build_plan(repo_path, config, name, inputs)

    if not plan["changes"]:
        print_warning("No update needed. Files already have the requested values.")
        return False

    show_plan(plan)
    if dry_run:
        print_info(f"Dry run: branch {plan['branch']} was not created and nothing was written.")
        return False

    click.echo("")
    print_warning("Review the changes above.")
    if not confirm("Do you want to proceed with committing and pushing these changes?", "yes" if assume_yes else None):
        print_warning("Operation cancelled by user")
        print_info(f"Nothing was written. Branch {plan['branch']} was not created or changed.")
        return False

    if workflow["change_request"]:
        if change_request is None:
            change_request = click.prompt("CMR-ID", default="", show_default=False)
        change_request = require_value(change_request, "CMR-ID")
        print_info(f"Using CMR-ID: {change_request}")

    return apply_plan(repo_path, config, plan, inputs, change_request)
