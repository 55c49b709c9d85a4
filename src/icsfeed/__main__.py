"""Entry point for running icsfeed as a module.

Usage: python -m icsfeed [export|serve|secret] ...
"""

import sys

from icsfeed.cli import main

if __name__ == "__main__":
    sys.exit(main())
