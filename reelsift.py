#!/usr/bin/env python3
"""
Convenience shim to run reelsift from a source checkout.
Usage: python reelsift.py search "The Matrix" --year 1999 [--debug]
"""

from reelsift.cli import main


if __name__ == "__main__":
    main()
