"""
Trigram fulltext search objects on the destination article table.

The statements are issued verbatim, one committed statement at a time;
the first failure stops provisioning.
"""

from helpdesk2pg.config import MigrationSettings
from helpdesk2pg.database import Database
from helpdesk2pg.errors import AdministrativeStatementFailure


FULLTEXT_TABLE = "article"
FULLTEXT_COLUMNS = ("a_subject_trgm", "a_body_trgm")

FULLTEXT_ADD = [
    "CREATE EXTENSION IF NOT EXISTS plpgsql",
    """
    CREATE OR REPLACE FUNCTION helpdesk_trigrams(input text) RETURNS text[]
    LANGUAGE plpgsql IMMUTABLE AS $$
    DECLARE
        word text;
        result text[] := '{}';
        i integer;
    BEGIN
        IF input IS NULL THEN
            RETURN NULL;
        END IF;
        FOREACH word IN ARRAY regexp_split_to_array(lower(input), '[^[:alnum:]]+') LOOP
            CONTINUE WHEN word = '';
            IF length(word) < 3 THEN
                result := array_append(result, word);
                CONTINUE;
            END IF;
            FOR i IN 1 .. length(word) - 2 LOOP
                result := array_append(result, substr(word, i, 3));
            END LOOP;
        END LOOP;
        RETURN result;
    END;
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION helpdesk_trgm_tsvector(input text) RETURNS tsvector
    LANGUAGE sql IMMUTABLE AS $$
        SELECT array_to_tsvector(helpdesk_trigrams($1))
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION helpdesk_trgm_tsquery(input text) RETURNS tsquery
    LANGUAGE sql IMMUTABLE AS $$
        SELECT coalesce(string_agg(quote_literal(t), ' & '), '')::tsquery
        FROM unnest(helpdesk_trigrams($1)) AS t
    $$
    """,
    f"ALTER TABLE {FULLTEXT_TABLE} ADD COLUMN IF NOT EXISTS a_subject_trgm tsvector",
    f"ALTER TABLE {FULLTEXT_TABLE} ADD COLUMN IF NOT EXISTS a_body_trgm tsvector",
    """
    CREATE OR REPLACE FUNCTION helpdesk_article_subject_trgm() RETURNS trigger
    LANGUAGE plpgsql AS $$
    BEGIN
        NEW.a_subject_trgm := helpdesk_trgm_tsvector(NEW.a_subject);
        RETURN NEW;
    END;
    $$
    """,
    """
    CREATE OR REPLACE FUNCTION helpdesk_article_body_trgm() RETURNS trigger
    LANGUAGE plpgsql AS $$
    BEGIN
        NEW.a_body_trgm := helpdesk_trgm_tsvector(NEW.a_body);
        RETURN NEW;
    END;
    $$
    """,
    f"DROP TRIGGER IF EXISTS article_subject_trgm ON {FULLTEXT_TABLE}",
    f"""
    CREATE TRIGGER article_subject_trgm
        BEFORE INSERT OR UPDATE OF a_subject ON {FULLTEXT_TABLE}
        FOR EACH ROW EXECUTE PROCEDURE helpdesk_article_subject_trgm()
    """,
    f"DROP TRIGGER IF EXISTS article_body_trgm ON {FULLTEXT_TABLE}",
    f"""
    CREATE TRIGGER article_body_trgm
        BEFORE INSERT OR UPDATE OF a_body ON {FULLTEXT_TABLE}
        FOR EACH ROW EXECUTE PROCEDURE helpdesk_article_body_trgm()
    """,
    f"""
    UPDATE {FULLTEXT_TABLE}
       SET a_subject_trgm = helpdesk_trgm_tsvector(a_subject),
           a_body_trgm = helpdesk_trgm_tsvector(a_body)
    """,
    f"CREATE INDEX IF NOT EXISTS article_subject_trgm_idx ON {FULLTEXT_TABLE} USING gin (a_subject_trgm)",
    f"CREATE INDEX IF NOT EXISTS article_body_trgm_idx ON {FULLTEXT_TABLE} USING gin (a_body_trgm)",
]

FULLTEXT_REMOVE = [
    "DROP INDEX IF EXISTS article_subject_trgm_idx",
    "DROP INDEX IF EXISTS article_body_trgm_idx",
    f"DROP TRIGGER IF EXISTS article_subject_trgm ON {FULLTEXT_TABLE}",
    f"DROP TRIGGER IF EXISTS article_body_trgm ON {FULLTEXT_TABLE}",
    f"ALTER TABLE {FULLTEXT_TABLE} DROP COLUMN IF EXISTS a_subject_trgm",
    f"ALTER TABLE {FULLTEXT_TABLE} DROP COLUMN IF EXISTS a_body_trgm",
    "DROP FUNCTION IF EXISTS helpdesk_article_subject_trgm()",
    "DROP FUNCTION IF EXISTS helpdesk_article_body_trgm()",
    "DROP FUNCTION IF EXISTS helpdesk_trgm_tsquery(text)",
    "DROP FUNCTION IF EXISTS helpdesk_trgm_tsvector(text)",
    "DROP FUNCTION IF EXISTS helpdesk_trigrams(text)",
]


def _summary(statement: str) -> str:
    return " ".join(statement.split())[:90]


class FulltextProvisioner:
    def __init__(self, db: Database, settings: MigrationSettings):
        self.db = db
        self.settings = settings
        self.console = settings.console

    def add(self) -> int:
        return self._run(FULLTEXT_ADD)

    def remove(self) -> int:
        return self._run(FULLTEXT_REMOVE)

    def _run(self, statements: list[str]) -> int:
        """Execute ``statements`` in order; returns how many were issued."""
        issued = 0
        for statement in statements:
            if self.settings.dry_run:
                self.console.print(f"  [dim]would run: {_summary(statement)}[/dim]")
                continue
            try:
                self.db.execute(statement)
                self.db.commit()
            except self.db.driver_error as e:
                self.db.rollback()
                raise AdministrativeStatementFailure(statement, e) from e
            issued += 1
            if self.settings.verbose:
                self.console.print(f"  [dim]{_summary(statement)}[/dim]")
        return issued
