"""Main entry point for running exprcalc_pkg as a module.

This allows running exprcalc with:
    python -m exprcalc_pkg
    python -m exprcalc_pkg -e "2(3+x)" --vars "x=1"
    python -m exprcalc_pkg -d "cos(x-y)" --wrt "x;y"

This is equivalent to running:
    python -m exprcalc_pkg.cli
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
