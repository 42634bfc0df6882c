#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Limitless Sync – v0.8.0

    limitless.py sync [--dir DIR] [--since …] [--until …] [--poll [N]]
    limitless.py convert <md|txt|vtt> FILE_OR_GLOB… [--outdir DIR] [--type TYPE]

Requires LIMITLESS_API_KEY in the environment and the package installed
(`pip install -e .`).
"""

# The Limitless pendant syncs to the cloud from time to time, so a record may
# show up in the listing long after it was captured. `sync` therefore never
# trusts a date range: every pass re-lists the remote ids and downloads
# whatever has no <id>.json yet. Delete a file to have it fetched again.

import sys

from limitless_sync.cli import main

if __name__ == "__main__":
    sys.exit(main())
