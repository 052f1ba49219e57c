import subprocess
from pathlib import Path

from promoter.exceptions import GitError, InvalidInputError
from promoter.output import print_command


def run_cmd(cmd, cwd=None, check=True, capture_output=False):
    """Run a command. Raises GitError on a non-zero exit when check is set."""
    print_command(cmd)
    result = subprocess.run(
        cmd,
        cwd=cwd,
        text=True,
        capture_output=capture_output,
    )
    if check and result.returncode != 0:
        raise GitError(cmd, result.returncode, result.stderr if capture_output else "")
    if capture_output:
        return result.stdout.strip()
    return result.returncode


def require_value(value, label):
    """Strip a prompted value and refuse it if nothing is left."""
    value = (value or "").strip()
    if not value:
        raise InvalidInputError(f"{label} cannot be empty")
    return value


def relative_to(repo_path: Path, path: Path) -> str:
    try:
        return path.relative_to(repo_path).as_posix()
    except ValueError:
        return str(path)
