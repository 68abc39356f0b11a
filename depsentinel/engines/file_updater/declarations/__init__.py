"""Declaration syntaxes: auto-registered on import."""

from depsentinel.engines.file_updater.declarations import (
    go_mod,  # noqa: F401
    gopkg_toml,  # noqa: F401
    msbuild,  # noqa: F401
    terraform,  # noqa: F401
)
