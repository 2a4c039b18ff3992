#!/usr/bin/env python3
"""
PostgreSQL Restore - Main Entry Point

This script is a wrapper for the restore workflow located in pg_recovery/restore/
"""

import sys
from pg_recovery.restore.__main__ import main

if __name__ == '__main__':
    sys.exit(main())
