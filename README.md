# batchr

`batchr` imports a SurrealQL export file into a SurrealDB server through the server's HTTP API.
It sends requests to the `/sql` and `/import` endpoints.

It reads the export one statement at a time and works in three steps:

1. It removes the target namespace with `REMOVE NAMESPACE IF EXISTS <namespace>;`.
2. It imports all definition statements in one transaction.
3. It imports the data of each table. Up to ten tables run at the same time.
   A table's queries go in batches of about 2,000,000 bytes. Each batch is one transaction.

A `tqdm` progress bar shows each table while it is imported.

## Installation

```
pip install .
```

To install the test tools as well, use `pip install .[test]`.

## Usage

The connection settings come from environment variables. All five must be set:

| Variable              | Meaning                                               |
|-----------------------|-------------------------------------------------------|
| `SURREALDB_ENDPOINT`  | Base URL of the server, e.g. `http://localhost:8000`  |
| `SURREALDB_USERNAME`  | User name for basic authentication                    |
| `SURREALDB_PASSWORD`  | Password for basic authentication                     |
| `SURREALDB_NAMESPACE` | Namespace to import into. It is removed first.        |
| `SURREALDB_DATABASE`  | Database to import into                               |

Then run:

```
batchr path/to/export.surql
```

The command exits with status 0 on success. If the configuration or the file is wrong, or the
namespace removal or the definition import fails, it prints `Error: ...` to standard error and
exits with status 1.

**Warning:** the first step deletes the namespace named in `SURREALDB_NAMESPACE`. Do not use a
namespace whose contents you want to keep.

## Export file layout

- A line that starts with `--` is a comment.
- Every other line is part of a query. A query ends at a line that ends in `;` followed by a
  newline.
- A `-- TABLE: <name>` comment starts the definitions of a table.
- A `-- TABLE DATA: <name>` comment starts the data of that table.
- Queries that come before the first data section, or inside a definitions section, are
  definitions. Queries inside a data section are the table's data.
- Other non-empty comments are printed as they are read.

## Errors

When the server reports errors for a batch, `batchr` writes `<table>-Errors.json` in the
current directory. The file holds the error messages and the queries of that batch. For definitions
the file is `Initial-Errors.json`. A failed definition import stops the run. A failed data batch
is shown in that table's progress bar description, and the import goes on with the next batch.

## Library use

- `batchr.parse.iter_statements(source)` and `batchr.parse.StatementStream(source)` read a seekable
  binary file. They yield `Statement` objects with `offset`, `kind` (`StatementKind.COMMENT` or
  `StatementKind.QUERY`) and `text`. Input that is not UTF-8 raises `ValueError`.
- `batchr.db.Database` is an async client with `sql(sql)`, `import_batch(table, completed, batch)`
  and `aclose()`. It can also be used with `async with`. `Database.from_env()` builds one from
  the variables above. Failures raise `batchr.db.DatabaseError`.
  `build_import_sql` and `collect_errors` are the helpers it uses.
- `batchr.cli.plan_import(statements)` returns the definition queries and a list of `TableSpan`
  entries (`name`, `offset`, `statements`). `iter_batches`, `import_table` and `run` perform the
  import. `main(argv)` is the command.

## Limits

`batchr` only creates data. It does not export, back up, or compare databases. The only
connection to the server is HTTP with basic authentication, and the concurrency and batch size
used by the command cannot be changed from the command line.