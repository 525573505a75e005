"""Source-control backends (GitHub REST, local git)."""

from primpact.scm.base import PullRequestInfo, SourceControl
from primpact.scm.github import GitHubPlatform
from primpact.scm.local import LocalGitRepository

__all__ = ["GitHubPlatform", "LocalGitRepository", "PullRequestInfo", "SourceControl"]
