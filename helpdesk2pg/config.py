"""
Configuration loading, DSN parsing, and run settings.
"""

import sys
import json
from pathlib import Path
from urllib.parse import urlsplit, unquote

from rich.prompt import Confirm

from helpdesk2pg import (
    console, CONFIG_FILE, DEFAULT_CONFIG,
    CHUNK_SIZE, PUBLIC_SCHEMA, ATTACHMENT_TABLE,
)


ENGINE_ALIASES = {
    "mysql": "mysql",
    "mariadb": "mysql",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "pgsql": "postgresql",
    "pg": "postgresql",
}

DEFAULT_PORTS = {
    "mysql": 3306,
    "postgresql": 5432,
}

PLACEHOLDER_PASSWORDS = ("YOUR_SOURCE_PASSWORD", "YOUR_DESTINATION_PASSWORD")


# ═════════════════════════════════════════════════════════════
# Data classes for connection details
# ═════════════════════════════════════════════════════════════

class ConnectionConfig:
    def __init__(self, engine: str, host: str, port: int, database: str,
                 user: str = None, password: str = None):
        self.engine = engine
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password

    @property
    def safe_uri(self) -> str:
        """URI for display, with the password masked."""
        user = f"{self.user}:****@" if self.user else ""
        return f"{self.engine}://{user}{self.host}:{self.port}/{self.database}"


class AttachmentColumns:
    """Column names of the attachment table the content normalizer works on."""

    def __init__(self, content: str = "content", content_type: str = "content_type",
                 content_encoding: str = "content_encoding", filename: str = "filename"):
        self.content = content
        self.content_type = content_type
        self.content_encoding = content_encoding
        self.filename = filename

    def as_tuple(self) -> tuple[str, str, str, str]:
        return (self.content, self.content_type, self.content_encoding, self.filename)


class MigrationSettings:
    """Run-wide options handed to every component."""

    def __init__(
        self,
        dry_run: bool = False,
        verbose: bool = False,
        chunk_size: int = CHUNK_SIZE,
        strict_encoding: bool = True,
        disable_triggers: bool = True,
        schema: str = PUBLIC_SCHEMA,
        attachment_table: str = ATTACHMENT_TABLE,
        attachment_columns: AttachmentColumns = None,
        ignored_columns: dict = None,
        console=console,
    ):
        self.dry_run = dry_run
        self.verbose = verbose
        self.chunk_size = chunk_size
        self.strict_encoding = strict_encoding
        self.disable_triggers = disable_triggers
        self.schema = schema
        self.attachment_table = attachment_table
        self.attachment_columns = attachment_columns or AttachmentColumns()
        # destination table (lower-cased) -> columns left out of the copy
        self.ignored_columns = ignored_columns or {}
        self.console = console


# ═════════════════════════════════════════════════════════════
# DSN parsing
# ═════════════════════════════════════════════════════════════

def _engine_name(raw: str) -> str:
    engine = ENGINE_ALIASES.get(raw.strip().lower())
    if engine is None:
        raise ValueError(
            f"unsupported database engine '{raw}' "
            f"(expected one of: {', '.join(sorted(set(ENGINE_ALIASES)))})"
        )
    return engine


def _parse_dbi_dsn(dsn: str) -> dict:
    """Parse ``DBI:mysql:database=otrs;host=db;port=3306`` style descriptors."""
    parts = dsn.split(":", 2)
    if len(parts) != 3 or not parts[2]:
        raise ValueError(f"malformed DBI descriptor '{dsn}'")
    engine = _engine_name(parts[1])

    attrs = {}
    for item in parts[2].split(";"):
        if not item.strip():
            continue
        key, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"malformed DBI attribute '{item}' in '{dsn}'")
        attrs[key.strip().lower()] = value.strip()

    database = attrs.get("database") or attrs.get("dbname") or attrs.get("db")
    if not database:
        raise ValueError(f"no database name in '{dsn}'")
    port = attrs.get("port")
    return {
        "engine": engine,
        "host": attrs.get("host") or attrs.get("hostname") or "localhost",
        "port": int(port) if port else DEFAULT_PORTS[engine],
        "database": database,
        "user": None,
        "password": None,
    }


def _parse_url_dsn(dsn: str) -> dict:
    """Parse ``mysql://user:pw@host:3306/otrs`` style descriptors."""
    parts = urlsplit(dsn)
    engine = _engine_name(parts.scheme)
    database = unquote(parts.path.lstrip("/"))
    if not database:
        raise ValueError(f"no database name in '{dsn}'")
    return {
        "engine": engine,
        "host": parts.hostname or "localhost",
        "port": parts.port or DEFAULT_PORTS[engine],
        "database": database,
        "user": unquote(parts.username) if parts.username else None,
        "password": unquote(parts.password) if parts.password else None,
    }


def parse_dsn(dsn: str) -> dict:
    """Split a DSN-equivalent into engine, host, port and database name."""
    dsn = dsn.strip()
    if dsn.lower().startswith("dbi:"):
        return _parse_dbi_dsn(dsn)
    if "://" in dsn:
        return _parse_url_dsn(dsn)
    raise ValueError(
        f"unrecognized DSN '{dsn}' "
        "(use e.g. mysql://host:3306/otrs or DBI:Pg:dbname=otrs;host=db)"
    )


def build_connection_config(dsn: str, user: str = None, password: str = None) -> ConnectionConfig:
    """Build a ConnectionConfig; explicit user/password win over DSN credentials."""
    parsed = parse_dsn(dsn)
    return ConnectionConfig(
        engine=parsed["engine"],
        host=parsed["host"],
        port=parsed["port"],
        database=parsed["database"],
        user=user if user else parsed["user"],
        password=password if password is not None else parsed["password"],
    )


# ═════════════════════════════════════════════════════════════
# Configuration functions
# ═════════════════════════════════════════════════════════════

def init_config(config_file: Path = CONFIG_FILE):
    """Create a fresh migration_config.json with defaults."""
    if config_file.exists():
        console.print(f"  [yellow]⚠ Config file already exists:[/yellow] {config_file}")
        if not Confirm.ask("  Overwrite?", default=False):
            console.print("  [dim]Skipped. Edit the existing file manually.[/dim]")
            return

    try:
        config_file.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n")
    except PermissionError:
        console.print(
            f"\n[red]✗ Permission denied:[/red] Cannot write to {config_file}\n"
            "  Try running with appropriate permissions or check directory ownership.\n"
        )
        sys.exit(1)
    except OSError as e:
        console.print(
            f"\n[red]✗ Failed to create config file:[/red] {e}\n"
            "  Check disk space and directory permissions.\n"
        )
        sys.exit(1)

    console.print(f"  [green]✓[/green] Created [bold]{config_file}[/bold]")
    console.print("  [dim]Edit the file with your source/destination credentials, then run:[/dim]")
    console.print("  [cyan]python migrate.py --copy[/cyan]\n")


def _read_config_file(config_file: Path) -> dict:
    try:
        raw = config_file.read_text()
    except PermissionError:
        console.print(
            f"\n[red]✗ Permission denied:[/red] Cannot read {config_file}\n"
            f"  Check file permissions: [dim]ls -la {config_file.name}[/dim]\n"
        )
        sys.exit(1)
    except OSError as e:
        console.print(f"\n[red]✗ Cannot read config file:[/red] {e}")
        sys.exit(1)

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        console.print(
            f"\n[red]✗ Invalid JSON in {config_file.name}:[/red]\n"
            f"  {e}\n\n"
            "  [dim]Common issues: trailing commas, missing quotes, unescaped characters.[/dim]\n"
        )
        sys.exit(1)

    if not isinstance(data, dict):
        console.print(
            f"\n[red]✗ Config file must contain a JSON object,[/red] got {type(data).__name__}\n"
            "  [dim]Expected format: {{\"source\": {{...}}, \"destination\": {{...}}}}[/dim]\n"
        )
        sys.exit(1)
    return data


def load_config(config_file: Path = CONFIG_FILE, overrides: dict = None) -> tuple[ConnectionConfig, ConnectionConfig]:
    """Load connection settings from the config file and command-line overrides.

    ``overrides`` maps ``"source"``/``"destination"`` to dicts with
    ``dsn``, ``user`` and ``password``; ``None`` values leave the file's
    value in place. The file may be absent when both DSNs come from the
    command line.
    """
    overrides = overrides or {}
    have_cli_dsns = all((overrides.get(s) or {}).get("dsn") for s in ("source", "destination"))

    if config_file.exists():
        data = _read_config_file(config_file)
    elif have_cli_dsns:
        data = {}
    else:
        console.print(
            f"\n[red]✗ Config file not found:[/red] {config_file}\n"
            "  Run [cyan]python migrate.py --init[/cyan] to create it, "
            "or pass both DSNs on the command line.\n"
        )
        sys.exit(1)

    errors = []
    sections = {}
    for name in ("source", "destination"):
        section = data.get(name) or {}
        if not isinstance(section, dict):
            console.print(f"\n[red]✗ \"{name}\" must be a JSON object, got {type(section).__name__}[/red]")
            sys.exit(1)
        merged = dict(section)
        for key, value in (overrides.get(name) or {}).items():
            if value is not None:
                merged[key] = value
        sections[name] = merged

        dsn = merged.get("dsn")
        if dsn is None or (isinstance(dsn, str) and not dsn.strip()):
            errors.append(f"{name}.dsn — value is missing")
        if merged.get("password") in PLACEHOLDER_PASSWORDS:
            errors.append(f"{name}.password — still has placeholder value \"{merged['password']}\"")

    configs = {}
    if not errors:
        for name, merged in sections.items():
            try:
                configs[name] = build_connection_config(
                    str(merged["dsn"]),
                    user=merged.get("user"),
                    password=merged.get("password"),
                )
            except ValueError as e:
                errors.append(f"{name}.dsn — {e}")

    if errors:
        console.print(f"\n[red]✗ Config validation failed ({len(errors)} issue{'s' if len(errors) > 1 else ''}):[/red]")
        for err in errors:
            console.print(f"  [yellow]•[/yellow] {err}")
        console.print(f"\n  [dim]Edit {config_file.name} or the command-line options and fix the issues above.[/dim]\n")
        sys.exit(1)

    if configs["destination"].engine != "postgresql":
        console.print(
            f"\n[red]✗ Destination must be a PostgreSQL database,[/red] got {configs['destination'].engine}\n"
        )
        sys.exit(1)

    return configs["source"], configs["destination"]
