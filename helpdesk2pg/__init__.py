"""
═══════════════════════════════════════════════════════════════
  Helpdesk database → PostgreSQL Migration Tool (helpdesk2pg)
═══════════════════════════════════════════════════════════════
"""

from pathlib import Path
from rich.console import Console

# ═════════════════════════════════════════════════════════════
# Shared console instance
# ═════════════════════════════════════════════════════════════

console = Console()

# ═════════════════════════════════════════════════════════════
# Constants
# ═════════════════════════════════════════════════════════════

SCRIPT_DIR = Path(__file__).parent.parent.resolve()
CONFIG_FILE = SCRIPT_DIR / "migration_config.json"
REPORT_FILE = "migration_report.html"

CHUNK_SIZE = 100
PUBLIC_SCHEMA = "public"
ATTACHMENT_TABLE = "article_attachment"

DEFAULT_CONFIG = {
    "source": {
        "dsn": "mysql://localhost:3306/otrs",
        "user": "otrs",
        "password": "YOUR_SOURCE_PASSWORD",
    },
    "destination": {
        "dsn": "postgresql://localhost:5432/otrs",
        "user": "otrs",
        "password": "YOUR_DESTINATION_PASSWORD",
    },
}
