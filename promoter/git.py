from pathlib import Path

from promoter.exceptions import GitError, PromotionError
from promoter.output import print_info, print_rule, print_warning
from promoter.utils import run_cmd

# Outcomes of resolve_branch
LOCAL = "local"
REMOTE = "remote"
NEW = "new"


def ensure_repo(repo_path: Path):
    """Fail unless repo_path is inside a git work tree. Returns the top-level directory."""
    try:
        run_cmd(["git", "rev-parse", "--git-dir"], cwd=repo_path, capture_output=True)
        top = run_cmd(["git", "rev-parse", "--show-toplevel"], cwd=repo_path, capture_output=True)
    except (GitError, FileNotFoundError):
        raise PromotionError("This command must be run from within a git repository")
    return Path(top)


def checkout_base(repo_path: Path, base_branch, remote):
    print_info(f"Checking out to {base_branch} branch...")
    run_cmd(["git", "checkout", base_branch], cwd=repo_path)
    print_info(f"Pulling latest changes from {base_branch}...")
    run_cmd(["git", "pull", remote, base_branch], cwd=repo_path)


def local_branch_exists(repo_path: Path, branch):
    code = run_cmd(
        ["git", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}"],
        cwd=repo_path,
        check=False,
    )
    return code == 0


def remote_branch_exists(repo_path: Path, branch, remote):
    output = run_cmd(
        ["git", "ls-remote", "--heads", remote, branch],
        cwd=repo_path,
        capture_output=True,
    )
    return any(line.endswith(f"refs/heads/{branch}") for line in output.splitlines())


def resolve_branch(repo_path: Path, branch, remote):
    """
    Check out the ticket branch, reusing it when it already exists.

    - exists locally: checkout and pull; a failed pull only warns
    - exists on the remote only: create a local branch tracking it
    - exists nowhere: branch off the current HEAD (the freshly pulled base)
    """
    print_info(f"Checking for existing branch: {branch}")

    if local_branch_exists(repo_path, branch):
        print_warning(f"Branch {branch} already exists locally. Checking out to existing branch...")
        run_cmd(["git", "checkout", branch], cwd=repo_path)
        print_info("Pulling latest changes for existing branch...")
        try:
            run_cmd(["git", "pull", remote, branch], cwd=repo_path, capture_output=True)
        except GitError:
            print_warning("Could not pull from remote (branch may not exist remotely yet)")
        return LOCAL

    if remote_branch_exists(repo_path, branch, remote):
        print_warning(f"Branch {branch} exists on remote. Checking out and tracking remote branch...")
        run_cmd(["git", "fetch", remote, branch], cwd=repo_path)
        run_cmd(["git", "checkout", "-b", branch, "--track", f"{remote}/{branch}"], cwd=repo_path)
        return REMOTE

    print_info(f"Creating new branch: {branch}")
    run_cmd(["git", "checkout", "-b", branch], cwd=repo_path)
    return NEW


def show_diff(repo_path: Path, files):
    print_info("Showing diff of changes:")
    print_rule()
    run_cmd(["git", "--no-pager", "diff", "--"] + [str(f) for f in files], cwd=repo_path, check=False)
    print_rule()


def commit(repo_path: Path, files, message):
    run_cmd(["git", "add", "--"] + [str(f) for f in files], cwd=repo_path)
    run_cmd(["git", "commit", "-m", message], cwd=repo_path)


def push(repo_path: Path, branch, remote):
    run_cmd(["git", "push", remote, branch], cwd=repo_path)

