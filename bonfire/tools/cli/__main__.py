"""
Entry point of `bonfire` CLI when run as `python -m bonfire.tools.cli`.
"""

from .main import run

run()
