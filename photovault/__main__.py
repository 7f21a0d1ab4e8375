"""
Main entry point for running the package as a module.

Usage:
    python -m photovault serve
    python -m photovault upload IMG_0001.jpg IMG_0002.jpg
    python -m photovault search --lat-min 35 --lat-max 36 --lon-min 139 --lon-max 140
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
