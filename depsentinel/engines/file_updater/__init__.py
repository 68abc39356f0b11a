"""File updater engine: patch dependency declarations in place."""

from depsentinel.engines.file_updater.lockfile import LockRegenerator, TerraformProvidersLock
from depsentinel.engines.file_updater.property_finder import PropertyDetails, PropertyValueFinder
from depsentinel.engines.file_updater.registry import DeclarationSyntax, syntax_for
from depsentinel.engines.file_updater.updater import FileUpdater

__all__ = [
    "DeclarationSyntax",
    "FileUpdater",
    "LockRegenerator",
    "PropertyDetails",
    "PropertyValueFinder",
    "TerraformProvidersLock",
    "syntax_for",
]
