"""Review platform bindings and the commenter factory."""

from __future__ import annotations

from typing import Optional

from difflint.comments.reconciler import BaseCommenter
from difflint.config.loader import ConfigError
from difflint.config.schema import DifflintConfig
from difflint.git.adapter import GitRunner, current_branch, head_commit
from difflint.platforms.bitbucket import BitbucketCommenter
from difflint.platforms.github import GithubCommenter
from difflint.platforms.gitlab import GitlabCommenter
from difflint.platforms.http import ApiClient, PlatformError

__all__ = [
    "ApiClient",
    "BitbucketCommenter",
    "GithubCommenter",
    "GitlabCommenter",
    "PlatformError",
    "build_commenter",
]


def _require(value: object, name: str) -> None:
    if not value:
        raise ConfigError(f"{name} is required for this reporter platform")


def build_commenter(cfg: DifflintConfig, runner: GitRunner) -> Optional[BaseCommenter]:
    """Build the commenter for ``reporter.platform``; None for ``none``.

    Missing head commit and branch names are filled in from git.
    """
    rep = cfg.reporter
    if rep.platform == "github":
        gh = cfg.github
        _require(gh.owner, "github.owner")
        _require(gh.repo, "github.repo")
        _require(gh.pr, "github.pr")
        _require(gh.token, "DIFFLINT_GITHUB_TOKEN")
        return GithubCommenter(
            owner=gh.owner,
            repo=gh.repo,
            pr=int(gh.pr),
            head_commit=gh.head_commit or head_commit(runner),
            token=gh.token,
            api_url=gh.url,
            timeout=rep.timeout,
            max_comments=rep.max_comments,
        )
    if rep.platform == "gitlab":
        gl = cfg.gitlab
        _require(gl.project, "gitlab.project")
        _require(gl.token, "DIFFLINT_GITLAB_TOKEN")
        return GitlabCommenter(
            project=gl.project,
            branch=gl.branch or current_branch(runner),
            token=gl.token,
            url=gl.url,
            timeout=rep.timeout,
            max_comments=rep.max_comments,
        )
    if rep.platform == "bitbucket":
        bb = cfg.bitbucket
        _require(bb.url, "bitbucket.url")
        _require(bb.project, "bitbucket.project")
        _require(bb.repo, "bitbucket.repo")
        _require(bb.token, "DIFFLINT_BITBUCKET_TOKEN")
        return BitbucketCommenter(
            url=bb.url,
            project=bb.project,
            repo=bb.repo,
            branch=bb.branch or current_branch(runner),
            head_commit=head_commit(runner),
            token=bb.token,
            timeout=rep.timeout,
            max_comments=rep.max_comments,
        )
    return None
