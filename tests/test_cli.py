import io

import pytest

from batchr.cli import (
    Section,
    SectionKind,
    TableSpan,
    import_table,
    iter_batches,
    main,
    plan_import,
    run,
    split_comment,
)
from batchr.db import DatabaseError
from batchr.parse import StatementStream

EXPORT = (
    b"-- ------------------------------\n"
    b"-- OPTION\n"
    b"-- ------------------------------\n"
    b"OPTION IMPORT;\n"
    b"-- TABLE: a\n"
    b"DEFINE TABLE a;\n"
    b"-- TABLE DATA: a\n"
    b"INSERT 1;\n"
    b"INSERT 2;\n"
    b"-- TABLE: b\n"
    b"DEFINE TABLE b;\n"
    b"-- TABLE DATA: b\n"
    b"INSERT 3;\n"
)


def _statements(data=EXPORT, offset=0):
    source = io.BytesIO(data)
    source.seek(offset)
    return StatementStream(source)


class FakeDatabase:
    def __init__(self, fail_tables=()):
        self.namespace = "ns"
        self.sql_calls = []
        self.imports = []
        self.fail_tables = set(fail_tables)

    async def sql(self, sql):
        self.sql_calls.append(sql)

    async def import_batch(self, table, completed, batch):
        self.imports.append((table, completed, list(batch)))
        if table in self.fail_tables:
            raise DatabaseError("boom")


class FakeProgress:
    def __init__(self):
        self.descriptions = []
        self.position = 0

    def set_description(self, message):
        self.descriptions.append(message)

    def update(self, n):
        self.position += n


@pytest.mark.parametrize(
    "comment, expected",
    [
        ("-- TABLE: user", ("TABLE", "user")),
        ("-- TABLE DATA: user", ("TABLE DATA", "user")),
        ("-- ------------------------------", ("", "")),
        ("-- OPTION", ("OPTION", "")),
    ],
)
def test_split_comment(comment, expected):
    assert split_comment(comment) == expected


def test_section_str():
    assert str(Section(SectionKind.DATA, "user")) == "user data"
    assert str(Section(SectionKind.DEFINITIONS, "Initial")) == "Initial definitions"


def test_plan_import_collects_definitions_and_tables():
    definitions, tables = plan_import(_statements())
    assert definitions == ["OPTION IMPORT;\n", "DEFINE TABLE a;\n", "DEFINE TABLE b;\n"]
    assert [t.name for t in tables] == ["a", "b"]
    assert [t.statements for t in tables] == [2, 1]
    assert tables[0].offset == EXPORT.index(b"-- TABLE DATA: a")
    assert tables[1].offset == EXPORT.index(b"-- TABLE DATA: b")


def test_plan_import_without_data():
    definitions, tables = plan_import(_statements(b"-- TABLE: a\nDEFINE TABLE a;\n"))
    assert definitions == ["DEFINE TABLE a;\n"]
    assert tables == []


def test_iter_batches_stops_at_next_table():
    offset = EXPORT.index(b"-- TABLE DATA: a")
    batches = list(iter_batches(_statements(offset=offset), 2, 10_000))
    assert batches == [["INSERT 1;\n", "INSERT 2;\n"]]


def test_iter_batches_splits_on_size():
    offset = EXPORT.index(b"-- TABLE DATA: a")
    batches = list(iter_batches(_statements(offset=offset), 2, 1))
    assert batches == [["INSERT 1;\n"], ["INSERT 2;\n"]]


def test_iter_batches_stops_at_end_of_input():
    offset = EXPORT.index(b"-- TABLE DATA: b")
    batches = list(iter_batches(_statements(offset=offset), 5, 10_000))
    assert batches == [["INSERT 3;\n"]]


@pytest.mark.asyncio
async def test_import_table_sends_batches(tmp_path):
    path = tmp_path / "export.surql"
    path.write_bytes(EXPORT)
    table = TableSpan("a", EXPORT.index(b"-- TABLE DATA: a"), 2)
    db = FakeDatabase()
    progress = FakeProgress()
    completed = await import_table(db, str(path), table, progress)
    assert completed == 2
    assert db.imports == [("a", 0, ["INSERT 1;\n", "INSERT 2;\n"])]
    assert progress.position == 2


@pytest.mark.asyncio
async def test_import_table_reports_failure_and_continues(tmp_path):
    path = tmp_path / "export.surql"
    path.write_bytes(EXPORT)
    table = TableSpan("a", EXPORT.index(b"-- TABLE DATA: a"), 2)
    db = FakeDatabase(fail_tables={"a"})
    progress = FakeProgress()
    completed = await import_table(db, str(path), table, progress)
    assert completed == 2
    assert progress.descriptions[-1] == "Failed to import a: boom"


@pytest.mark.asyncio
async def test_run_imports_everything(tmp_path):
    path = tmp_path / "export.surql"
    path.write_bytes(EXPORT)
    db = FakeDatabase()
    tables = await run(str(path), db, 2)
    assert db.sql_calls == ["REMOVE NAMESPACE IF EXISTS ns;"]
    assert db.imports[0] == (
        "Initial",
        0,
        ["OPTION IMPORT;\n", "DEFINE TABLE a;\n", "DEFINE TABLE b;\n"],
    )
    assert sorted(db.imports[1:]) == [
        ("a", 0, ["INSERT 1;\n", "INSERT 2;\n"]),
        ("b", 0, ["INSERT 3;\n"]),
    ]
    assert [t.name for t in tables] == ["a", "b"]


@pytest.mark.asyncio
async def test_run_fails_when_definitions_fail(tmp_path):
    path = tmp_path / "export.surql"
    path.write_bytes(EXPORT)
    db = FakeDatabase(fail_tables={"Initial"})
    with pytest.raises(DatabaseError, match="Failed to import definitions"):
        await run(str(path), db, 2)


def test_main_requires_environment(monkeypatch, capsys):
    for name in (
        "SURREALDB_ENDPOINT",
        "SURREALDB_USERNAME",
        "SURREALDB_PASSWORD",
        "SURREALDB_NAMESPACE",
        "SURREALDB_DATABASE",
    ):
        monkeypatch.delenv(name, raising=False)
    assert main(["export.surql"]) == 1
    assert "SURREALDB_ENDPOINT" in capsys.readouterr().err


def test_main_requires_path(monkeypatch, capsys):
    monkeypatch.setenv("SURREALDB_ENDPOINT", "http://localhost:8000")
    monkeypatch.setenv("SURREALDB_USERNAME", "user")
    monkeypatch.setenv("SURREALDB_PASSWORD", "password")
    monkeypatch.setenv("SURREALDB_NAMESPACE", "ns")
    monkeypatch.setenv("SURREALDB_DATABASE", "db")
    assert main([]) == 1
    assert "No file path provided" in capsys.readouterr().err