"""
Pytest configuration and shared fixtures.
"""
from pathlib import Path

import pytest
from click.testing import CliRunner

from promoter import git, output
from promoter.exceptions import GitError

SERVICE = "ts-csp-s3-file-sync"

QA_PATH = f"envs/integration/env-2a/{SERVICE}-qa-values.yaml"
QA_BOX_DEV_PATH = f"envs/box-dev/us-dev-2/{SERVICE}-qa-values.yaml"
STAGE_PATH = f"envs/stage/stg-1/{SERVICE}-values.yaml"
PROD_PATH = f"envs/prod/prd-1/{SERVICE}-values.yaml"


def qa_values(ruleset="rules-v3", job_stage="Prod"):
    """QA values file: ruleset on line 8, job_stage on line 11."""
    return (
        "replicaCount: 1\n"
        "image:\n"
        "  repository: ts-csp-s3-file-sync\n"
        '  tag: "1.4.2"\n'
        "config:\n"
        "  region: us-east-1\n"
        "  etRules:\n"
        f'    fileName: "{ruleset}"\n'
        "  env:\n"
        "    - name: job_stage\n"
        f'      value: "{job_stage}"\n'
        "resources:\n"
        "  limits:\n"
        "    memory: 512Mi\n"
    )


def env_values(ruleset="rules-v3"):
    """Stage / Prod values file: ruleset name on line 25."""
    lines = ["# Managed by the deploy pipeline", "replicaCount: 2"]
    lines += [f"setting{i}: value{i}" for i in range(3, 23)]
    lines += ["ruleset:", "  source: s3", f"  name: {ruleset}  # promoted by hand", "tolerations: []"]
    return "\n".join(lines) + "\n"


def write(repo: Path, relpath, text):
    path = repo / relpath
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def line(path: Path, number):
    return path.read_text(encoding="utf-8").splitlines()[number - 1]


@pytest.fixture(autouse=True)
def _quiet_output():
    output.VERBOSE = False
    yield
    output.VERBOSE = False


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def values_repo(tmp_path, monkeypatch):
    """A directory laid out like the values repository, all four files present."""
    monkeypatch.delenv("PROMOTER_CONFIG", raising=False)
    repo = tmp_path / "values"
    write(repo, QA_PATH, qa_values("rules-v3", "Prod"))
    write(repo, QA_BOX_DEV_PATH, qa_values("rules-v3", "Pre_prod"))
    write(repo, STAGE_PATH, env_values("rules-v3"))
    write(repo, PROD_PATH, env_values("rules-v2"))
    return repo


class FakeGit:
    """Records git invocations instead of running them."""

    def __init__(self, repo: Path):
        self.repo = repo
        self.calls = []
        self.local_branches = set()
        self.remote_branches = set()
        self.failing = set()
        self.hooks = {}

    def __call__(self, cmd, cwd=None, check=True, capture_output=False):
        self.calls.append(list(cmd))
        args = cmd[1:]
        code, out = 0, ""

        if args[:2] == ["rev-parse", "--show-toplevel"]:
            out = str(self.repo)
        elif args[:1] == ["show-ref"]:
            code = 0 if args[-1].replace("refs/heads/", "") in self.local_branches else 1
        elif args[:2] == ["ls-remote", "--heads"]:
            branch = args[-1]
            if branch in self.remote_branches:
                out = f"0123456789abcdef\trefs/heads/{branch}"

        for prefix in self.failing:
            if tuple(args[:len(prefix)]) == prefix:
                code = 1
        for prefix, hook in self.hooks.items():
            if tuple(args[:len(prefix)]) == prefix:
                hook()

        if check and code != 0:
            raise GitError(cmd, code)
        return out if capture_output else code

    def ran(self, *prefix):
        return [c for c in self.calls if tuple(c[1:1 + len(prefix)]) == prefix]


@pytest.fixture
def fake_git(values_repo, monkeypatch):
    fake = FakeGit(values_repo)
    monkeypatch.setattr(git, "run_cmd", fake)
    return fake
