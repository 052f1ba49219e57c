import click

VERBOSE = False


def print_info(message):
    click.echo(click.style("[INFO]", fg="blue") + f" {message}")


def print_success(message):
    click.echo(click.style("[SUCCESS]", fg="green") + f" {message}")


def print_warning(message):
    click.echo(click.style("[WARNING]", fg="yellow", bold=True) + f" {message}")


def print_error(message):
    click.echo(click.style("[ERROR]", fg="red") + f" {message}", err=True)


def print_command(cmd):
    if VERBOSE:
        click.secho(f"$ {' '.join(cmd)}", dim=True)


def print_rule():
    click.echo("-" * 40)
