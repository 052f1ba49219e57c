import re

import click

from promoter.config import load_config
from promoter.engine import promote
from promoter.exceptions import InvalidInputError
from promoter.git import ensure_repo
from promoter.output import print_info
from promoter.utils import require_value

# What `git check-ref-format --branch` refuses inside a branch name
FORBIDDEN_IN_REF = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]|\.\.|@\{|//|/\.|\.lock/")


def prompt_value(label, value=None):
    """Use the option value when given, otherwise ask for it. Empty is an error."""
    if value is None:
        value = click.prompt(label, default="", show_default=False)
    value = require_value(value, label)
    print_info(f"Using {label}: {value}")
    return value


def prompt_ticket(value=None):
    ticket = prompt_value("JiraID", value)
    if FORBIDDEN_IN_REF.search(ticket):
        raise InvalidInputError(f"JiraID cannot be used in a git branch name: {ticket}")
    return ticket


def setup(obj):
    """Resolve the repository and the effective configuration for a command."""
    repo_path = ensure_repo(obj["repo"])
    config = load_config(repo_path, obj.get("config_file"), obj.get("service"), obj.get("remote"))
    return repo_path, config


def workflow_options(func):
    func = click.option("--dry-run", is_flag=True, help="Show the planned diff and exit without touching git.")(func)
    func = click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer 'yes' to the confirmation prompt.")(func)
    func = click.option("--ticket", "-t", default=None, help="JiraID, used in the branch name (prompted when omitted).")(func)
    return func


@click.command("qa-update")
@workflow_options
@click.option("--ruleset", "-r", default=None, help="ET-Rules file name (prompted when omitted).")
@click.pass_obj
def qa_update(obj, ticket, assume_yes, dry_run, ruleset):
    """Set the QA ruleset file name and job_stage to Pre_prod."""
    repo_path, config = setup(obj)
    ticket = prompt_ticket(ticket)
    ruleset = prompt_value("ET-Rules File Name", ruleset)
    promote(repo_path, config, "qa-update", {"ticket": ticket, "ruleset": ruleset},
            assume_yes=assume_yes, dry_run=dry_run)


@click.command("qa-to-stage")
@workflow_options
@click.pass_obj
def qa_to_stage(obj, ticket, assume_yes, dry_run):
    """Promote the QA ruleset to Stage."""
    repo_path, config = setup(obj)
    ticket = prompt_ticket(ticket)
    promote(repo_path, config, "qa-to-stage", {"ticket": ticket}, assume_yes=assume_yes, dry_run=dry_run)


@click.command("qa-promote-prod")
@workflow_options
@click.pass_obj
def qa_promote_prod(obj, ticket, assume_yes, dry_run):
    """Flip QA job_stage from Pre_prod to Prod once Stage matches QA."""
    repo_path, config = setup(obj)
    ticket = prompt_ticket(ticket)
    promote(repo_path, config, "qa-promote-prod", {"ticket": ticket}, assume_yes=assume_yes, dry_run=dry_run)


@click.command("stage-to-prod")
@workflow_options
@click.option("--change-request", "-c", default=None, help="CMR-ID (prompted after confirmation when omitted).")
@click.pass_obj
def stage_to_prod(obj, ticket, assume_yes, dry_run, change_request):
    """Promote the Stage ruleset to Production (PRD-1)."""
    repo_path, config = setup(obj)
    ticket = prompt_ticket(ticket)
    promote(repo_path, config, "stage-to-prod", {"ticket": ticket},
            assume_yes=assume_yes, change_request=change_request, dry_run=dry_run)
