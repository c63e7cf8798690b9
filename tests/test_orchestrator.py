import pytest

from helpdesk2pg.errors import SchemaMismatch, TriggerSuspensionFailure
from helpdesk2pg.orchestrator import Migrator, plan_tables
from tests.conftest import USER_COLUMNS_MYSQL, USER_COLUMNS_PG, FakeDriverError


def test_plan_is_case_insensitive_union_in_source_order(source, destination):
    source.add_table("Ticket", [("id", "int")])
    source.add_table("users", [("id", "int")])
    source.add_table("legacy_only", [("id", "int")])
    destination.add_table("users", [("id", "integer")])
    destination.add_table("ticket", [("id", "integer")])
    destination.add_table("new_feature", [("id", "integer")])

    plan = plan_tables(source, destination)

    assert [t.name for t in plan.tables] == ["Ticket", "users", "legacy_only", "new_feature"]
    ticket = plan.tables[0]
    assert (ticket.source_name, ticket.destination_name) == ("Ticket", "ticket")
    assert [t.name for t in plan.copyable] == ["Ticket", "users"]
    assert [t.name for t in plan.skipped] == ["legacy_only", "new_feature"]
    assert not plan.tables[2].in_destination
    assert not plan.tables[3].in_source


def test_copy_replaces_stale_destination_rows(source, destination, settings):
    source.add_table("users", USER_COLUMNS_MYSQL, [
        (1, "alice", "alice@example.com"),
        (2, "bob", "bob@example.com"),
        (3, "carol", "carol@example.com"),
    ])
    destination.add_table("users", USER_COLUMNS_PG, [(77, "stale", "stale@example.com")])

    migrator = Migrator(source, destination, settings)
    report = migrator.run_copy(migrator.plan())

    assert sorted(destination.rows("users")) == sorted(source.rows("users"))
    assert len(report.copied) == 1
    assert report.total_rows == 3


def test_delete_happens_before_load_and_triggers_are_restored(source, destination, settings):
    source.add_table("users", USER_COLUMNS_MYSQL, [(1, "a", "a@x")])
    destination.add_table("users", USER_COLUMNS_PG, [(5, "old", "old@x")])

    migrator = Migrator(source, destination, settings)
    migrator.run_copy(migrator.plan())

    kinds = [s[0] if s[0] != "TRIGGERS" else f"TRIGGERS {s[1]}" for s in destination.statements]
    assert kinds == ["TRIGGERS off", "DELETE", "INSERT", "TRIGGERS on"]


def test_keep_triggers_leaves_session_alone(source, destination, settings):
    settings.disable_triggers = False
    source.add_table("users", USER_COLUMNS_MYSQL, [(1, "a", "a@x")])
    destination.add_table("users", USER_COLUMNS_PG)

    migrator = Migrator(source, destination, settings)
    migrator.run_copy(migrator.plan())

    assert destination.mutations("TRIGGERS") == []


def test_one_sided_tables_are_skipped(source, destination, settings):
    source.add_table("users", USER_COLUMNS_MYSQL, [(1, "a", "a@x")])
    source.add_table("legacy", [("id", "int")], [(1,)])
    destination.add_table("users", USER_COLUMNS_PG)
    destination.add_table("extra", [("id", "integer")], [(8,)])

    migrator = Migrator(source, destination, settings)
    report = migrator.run_copy(migrator.plan())

    assert [o.table.name for o in report.skipped] == ["legacy", "extra"]
    assert destination.rows("extra") == [(8,)]
    assert "not present in destination" in settings.console.file.getvalue()


def test_schema_mismatch_aborts_run_without_touching_table(source, destination, settings):
    source.add_table("queue", [("id", "int"), ("name", "varchar(10)")], [(1, "raw")])
    source.add_table("users", USER_COLUMNS_MYSQL, [(1, "a", "a@x")])
    destination.add_table("queue", [("id", "integer"), ("name", "text"), ("comments", "text")], [(4, "old", None)])
    destination.add_table("users", USER_COLUMNS_PG, [(2, "old", "old@x")])

    migrator = Migrator(source, destination, settings)
    with pytest.raises(SchemaMismatch):
        migrator.run_copy(migrator.plan())

    assert destination.rows("queue") == [(4, "old", None)]
    # the run stops; later tables are untouched
    assert destination.rows("users") == [(2, "old", "old@x")]
    assert destination.mutations("DELETE") == []
    assert destination.statements[-1] == ("TRIGGERS", "on")


def test_dry_run_issues_no_delete_or_insert(source, destination, dry_settings):
    source.add_table("users", USER_COLUMNS_MYSQL, [(1, "a", "a@x"), (2, "b", "b@x")])
    destination.add_table("users", USER_COLUMNS_PG, [(9, "old", "old@x")])
    destination.sequences["users_id_seq"] = 10

    migrator = Migrator(source, destination, dry_settings)
    report = migrator.migrate()

    assert destination.statements == []
    assert destination.rows("users") == [(9, "old", "old@x")]
    assert destination.sequences["users_id_seq"] == 10
    assert report.copied[0].result.copied_rows == 2


def test_sequence_resync_points_past_max_id(source, destination, settings):
    destination.add_table("tickets", [("id", "integer")], [(i,) for i in range(1, 43)])
    destination.sequences["tickets_id_seq"] = 1

    report = Migrator(source, destination, settings).resync_sequences()

    assert destination.sequences["tickets_id_seq"] == 43
    assert report.sequences[0].ref.table == "tickets"
    assert report.sequences[0].next_value == 43


def test_sequence_of_empty_table_restarts_at_one(source, destination, settings):
    destination.add_table("queue", [("id", "integer")])
    destination.sequences["queue_id_seq"] = 500

    Migrator(source, destination, settings).resync_sequences()

    assert destination.sequences["queue_id_seq"] == 1


def test_sequences_without_backing_table_are_skipped(source, destination, settings):
    destination.add_table("users", [("id", "integer")], [(3,)])
    destination.sequences["users_id_seq"] = 1
    destination.sequences["orphan_id_seq"] = 7
    destination.sequences["invoice_number"] = 1000

    report = Migrator(source, destination, settings).resync_sequences()

    assert [s.ref.sequence for s in report.sequences] == ["users_id_seq"]
    assert destination.sequences == {"users_id_seq": 4, "orphan_id_seq": 7, "invoice_number": 1000}


def test_refused_trigger_suspension_points_to_keep_triggers(source, destination, settings, mocker):
    source.add_table("users", USER_COLUMNS_MYSQL, [(1, "a", "a@x")])
    destination.add_table("users", USER_COLUMNS_PG, [(2, "old", "old@x")])
    mocker.patch.object(
        destination, "disable_triggers",
        side_effect=FakeDriverError('permission denied to set parameter "session_replication_role"'),
    )

    migrator = Migrator(source, destination, settings)
    with pytest.raises(TriggerSuspensionFailure, match="--keep-triggers") as info:
        migrator.run_copy(migrator.plan())

    assert info.value.label == "destination"
    assert destination.rollbacks == 1
    assert destination.statements == []
    assert destination.rows("users") == [(2, "old", "old@x")]
    assert "--keep-triggers" in settings.console.file.getvalue()
