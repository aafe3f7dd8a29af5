"""Main entry point for the ghmirror CLI tool.

This module lets the tool run straight from a checkout with
``python main.py ENTITY``.
"""

from ghmirror.cli import main

if __name__ == "__main__":
    main()
