import click

from promoter.output import print_error


class PromotionError(click.ClickException):
    """Base error for every failed promotion step. Exits with code 1."""

    exit_code = 1

    def show(self, file=None):
        print_error(self.format_message())


class InvalidInputError(PromotionError):
    pass


class ConfigError(PromotionError):
    pass


class MissingFileError(PromotionError):
    def __init__(self, role, path):
        super().__init__(f"{role} file not found: {path}")
        self.path = path


class FieldNotFoundError(PromotionError):
    pass


class PreconditionError(PromotionError):
    pass


class MutationError(PromotionError):
    pass


class PlanChangedError(PromotionError):
    pass


class GitError(PromotionError):
    def __init__(self, cmd, returncode, stderr=""):
        message = f"'{' '.join(cmd)}' failed with exit code {returncode}"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)
        self.cmd = cmd
        self.returncode = returncode
