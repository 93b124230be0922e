"""
CLI layer for linkspine.

Terminal transport only: argument parsing, model-module loading and
table formatting. Registry logic lives in ``linkspine.relations``.

Entry point::

    linkspine --help
"""

from linkspine.cli.app import app

__all__ = ["app"]
