"""Repository URL helpers for GitHub-hosted dependencies."""

from __future__ import annotations

import re

# Hosts whose Go-style module paths are also browsable repository paths.
_CODE_HOSTS = ("github.com", "gitlab.com", "bitbucket.org")

_GITHUB_PREFIX_RE = re.compile(
    r"^(?:git::)?(?:(?:https?|ssh)://)?(?:git@)?github\.com[/:]", re.IGNORECASE
)

# owner/repo after the host, ignoring ".git", `//subdir` and `?ref=` suffixes
_OWNER_REPO_RE = re.compile(r"^([^/\s]+)/([^/\s?]+?)(?:\.git)?(?:[/?].*)?$")


def repo_url_from_module(module_path: str) -> str | None:
    """``github.com/org/repo/sub`` -> ``https://github.com/org/repo``.

    None for module paths not hosted on a known code host.
    """
    host, _, rest = module_path.partition("/")
    segments = rest.split("/")
    if host not in _CODE_HOSTS or len(segments) < 2 or not all(segments[:2]):
        return None
    return f"https://{host}/{segments[0]}/{segments[1]}"


def is_github_url(repo_url: str) -> bool:
    return _GITHUB_PREFIX_RE.match(repo_url.strip()) is not None


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Split a GitHub URL into ``(owner, repo)``.

    Accepts https, ssh (``git@github.com:o/r.git``), Terraform
    ``git::`` sources with ``//subdir`` and ``?ref=`` suffixes, and bare
    ``github.com/o/r`` module paths. Raises ValueError otherwise.
    """
    stripped = repo_url.strip()
    prefix = _GITHUB_PREFIX_RE.match(stripped)
    match = _OWNER_REPO_RE.match(stripped[prefix.end():]) if prefix else None
    if match is None:
        raise ValueError(f"cannot parse GitHub repo URL: {repo_url!r}")
    return match.group(1), match.group(2)
