"""Allow `python -m codeforge` to launch the CLI."""

from codeforge.main import run

run()
