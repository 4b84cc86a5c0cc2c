"""
Main entry point for running the package as a module.

Usage:
    python -m photoindex index build --local-root ./content
    python -m photoindex status
    python -m photoindex optimize --limit 5
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
