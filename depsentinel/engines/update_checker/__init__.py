"""Update checker engine: find and resolve newer versions of a dependency."""

from depsentinel.engines.update_checker.checker import UpdateChecker
from depsentinel.engines.update_checker.file_preparer import FilePreparer
from depsentinel.engines.update_checker.git_commit_checker import GitCommitChecker
from depsentinel.engines.update_checker.latest_version_finder import LatestVersionFinder
from depsentinel.engines.update_checker.requirements_updater import RequirementsUpdater
from depsentinel.engines.update_checker.version_resolver import CommandResolver, VersionResolver

__all__ = [
    "CommandResolver",
    "FilePreparer",
    "GitCommitChecker",
    "LatestVersionFinder",
    "RequirementsUpdater",
    "UpdateChecker",
    "VersionResolver",
]
