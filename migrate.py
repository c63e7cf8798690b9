#!/usr/bin/env python3
"""
═══════════════════════════════════════════════════════════════
  Helpdesk database → PostgreSQL Migration Tool
═══════════════════════════════════════════════════════════════

  Copies every table of a ticketing-system database (MySQL or
  PostgreSQL) into an existing PostgreSQL schema:
    1. Compare table and column sets of both databases
    2. Empty and refill each destination table in one transaction
    3. Repair attachment content (charset / base64)
    4. Verify row counts and reset sequences

  Usage:
    pip install -e .
    python migrate.py --init            # Create config file (first time)
    # Edit migration_config.json with your credentials
    python migrate.py --copy --dry-run  # Preview
    python migrate.py --copy            # Run migration

═══════════════════════════════════════════════════════════════
"""

import sys

from helpdesk2pg.cli import main


if __name__ == "__main__":
    sys.exit(main())
