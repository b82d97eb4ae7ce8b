"""Configuration schema — dataclasses for every config section."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

Platform = Literal["none", "github", "gitlab", "bitbucket"]
OutputFormat = Literal["terminal", "json"]

PLATFORMS = ("none", "github", "gitlab", "bitbucket")
OUTPUT_FORMATS = ("terminal", "json")
SEVERITIES = ("information", "warning", "bug", "fatal")


@dataclass
class GitConfig:
    base_branch: str = "main"
    max_commits: int = 50  # 0 = no limit
    timeout: int = 30  # seconds per git command
    include: List[str] = field(default_factory=list)  # regexes, empty = everything
    exclude: List[str] = field(default_factory=list)


@dataclass
class OutputConfig:
    format: OutputFormat = "terminal"


@dataclass
class ReportConfig:
    fail_on: str = "bug"  # exit 1 on problems at or above this severity
    include_unmodified: bool = False


@dataclass
class ReporterConfig:
    platform: Platform = "none"
    timeout: int = 60  # seconds per HTTP request
    max_comments: int = 50
    summary_on_errors: bool = True
    publish_summary: bool = True  # PR-level summary / Code Insights report
    docs_url: str = "https://github.com/difflint/difflint/blob/main/docs/checks/{reporter}.md"


@dataclass
class GithubConfig:
    url: str = "https://api.github.com"
    owner: str = ""
    repo: str = ""
    pr: Optional[int] = None
    head_commit: str = ""  # defaults to HEAD
    token: str = field(default="", repr=False)


@dataclass
class GitlabConfig:
    url: str = "https://gitlab.com"
    project: str = ""
    branch: str = ""  # defaults to the current branch
    token: str = field(default="", repr=False)


@dataclass
class BitbucketConfig:
    url: str = ""
    project: str = ""
    repo: str = ""
    branch: str = ""
    token: str = field(default="", repr=False)


@dataclass
class DifflintConfig:
    version: str = "1.0"
    git: GitConfig = field(default_factory=GitConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    reporter: ReporterConfig = field(default_factory=ReporterConfig)
    github: GithubConfig = field(default_factory=GithubConfig)
    gitlab: GitlabConfig = field(default_factory=GitlabConfig)
    bitbucket: BitbucketConfig = field(default_factory=BitbucketConfig)
