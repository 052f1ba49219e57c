from pathlib import Path

import click
from InquirerPy import inquirer

from promoter import output
from promoter.commands.promoting import qa_promote_prod, qa_to_stage, qa_update, stage_to_prod
from promoter.workflows import WORKFLOWS

COMMANDS = {
    "qa-update": qa_update,
    "qa-to-stage": qa_to_stage,
    "qa-promote-prod": qa_promote_prod,
    "stage-to-prod": stage_to_prod,
}


@click.group(invoke_without_command=True)
@click.option("--repo", type=click.Path(exists=True, file_okay=False, path_type=Path), default=".",
              show_default=True, help="Path inside the values repository.")
@click.option("--config", "config_file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="YAML file overriding paths, lines and base branches.")
@click.option("--service", default=None, help="Service name used in the values file names.")
@click.option("--remote", default=None, help="Git remote to pull from and push to.")
@click.option("--verbose", "-v", is_flag=True, help="Echo every git command.")
@click.pass_context
def promoter(ctx, repo, config_file, service, remote, verbose):
    """🔧 Ruleset promotion: QA → Stage → Production."""
    output.VERBOSE = verbose
    ctx.obj = {"repo": repo, "config_file": config_file, "service": service, "remote": remote}

    if ctx.invoked_subcommand is not None:
        return

    # No command given: let the user pick a workflow
    try:
        selected = inquirer.select(
            message="Select promotion step:",
            choices=[{"name": f"{name}: {wf['summary']}", "value": name} for name, wf in WORKFLOWS.items()],
        ).execute()
    except KeyboardInterrupt:
        click.echo("\n❌ Exiting by user interrupt.")
        return

    ctx.invoke(COMMANDS[selected])


promoter.add_command(qa_update)
promoter.add_command(qa_to_stage)
promoter.add_command(qa_promote_prod)
promoter.add_command(stage_to_prod)


def main():
    promoter()


if __name__ == "__main__":
    main()
