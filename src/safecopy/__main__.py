"""
Command-line entrypoint for ``python -m safecopy``.

Runs the same click command as the ``safecopy`` console script.
"""

from safecopy.cli import cli

if __name__ == "__main__":
    cli(prog_name="safecopy")
