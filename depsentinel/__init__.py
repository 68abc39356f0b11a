"""depsentinel: dependency update checking and in-place manifest patching."""

__version__ = "0.1.0"
