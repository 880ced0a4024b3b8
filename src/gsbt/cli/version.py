"""Version command."""

import argparse
import json
import platform

from .. import __version__
from .common import get_output_format


def execute_version(args: argparse.Namespace) -> int:
    """Print version information."""
    if get_output_format(args) == "json":
        print(
            json.dumps(
                {"name": "gsbt", "version": __version__, "python": platform.python_version()}
            )
        )
    else:
        print(f"gsbt {__version__}")
    return 0
