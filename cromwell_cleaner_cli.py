#!/usr/bin/env python3
"""
Delete extraneous Cromwell execution files from a gs:// or s3:// path.

This is a thin wrapper around the cromwell_cleaner package.

Usage:
    python cromwell_cleaner_cli.py -b gs://my-bucket/cromwell-executions --dry-run
    python cromwell_cleaner_cli.py -b gs://my-bucket/cromwell-executions
    python cromwell_cleaner_cli.py --list-rules
"""

from __future__ import annotations

import sys

from cromwell_cleaner.cli import main

if __name__ == "__main__":  # pragma: no cover
    try:
        raise SystemExit(main())
    except KeyboardInterrupt as exc:
        print("\n✗ Cleanup interrupted by user.", file=sys.stderr)
        raise SystemExit(130) from exc
