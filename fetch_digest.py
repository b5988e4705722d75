#!/usr/bin/env python3
"""Hacker News / RSS digest — fetch, filter, record and deliver.

Usage:
    python fetch_digest.py [-c config.yaml] [--reverse | --vacuum] [--feeds-only]
"""

import sys

from hndigest.cli import main


if __name__ == "__main__":
    sys.exit(main())
