"""Starter .difflint.toml template."""

DEFAULT_TOML = """\
# difflint configuration
version = "1.0"

[git]
base_branch = "main"
max_commits = 50          # refuse to check more commits than this (0 = no limit)
timeout = 30              # seconds per git command
# include = ["rules/.*\\\\.ya?ml"]   # anchored regexes, empty = every path
# exclude = ["vendor/.*"]

[output]
format = "terminal"       # terminal | json

[report]
fail_on = "bug"           # information | warning | bug | fatal
# include_unmodified = false

[reporter]
platform = "none"         # none | github | gitlab | bitbucket
timeout = 60              # seconds per HTTP request
max_comments = 50
summary_on_errors = true
publish_summary = true    # PR-level summary, updated in place on every run

# Tokens are read from DIFFLINT_GITHUB_TOKEN / DIFFLINT_GITLAB_TOKEN /
# DIFFLINT_BITBUCKET_TOKEN, never from this file.

[github]
# url = "https://api.github.com"
# owner = "acme"
# repo = "rules"
# pr = 123

[gitlab]
# url = "https://gitlab.com"
# project = "acme/rules"

[bitbucket]
# url = "https://bitbucket.example.com"
# project = "ACME"
# repo = "rules"
"""
