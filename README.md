# pgtempdb

Create short-lived PostgreSQL databases on a server you already run, and drop
them again when you are done.

Each temporary database is named from a prefix and a time-based UUID with the
dashes replaced by underscores, for example
`pgschemadifftmp_1b4e28ba_2ca1_11d3_9b3a_00a0c91e6bf6`. The name is the prefix
followed by 36 characters. Inside each database a small metadata table records
when it was created, so a cleanup job can find and drop databases that were
left behind.

## Installation

```
pip install pgtempdb
```

The package has no dependencies and brings no PostgreSQL driver of its own.
You pass in a callable that takes a database name and returns a DB-API 2.0
connection to that database, opened with whichever driver you use.

## Usage

```python
from pgtempdb.factory import OnInstanceFactory


def connect(db_name):
    # Open a DB-API connection to `db_name` in autocommit mode
    # with the driver of your choice.
    ...


with OnInstanceFactory(connect) as factory:
    conn, drop = factory.create()
    try:
        cur = conn.cursor()
        cur.execute("CREATE TABLE foobar(id INT PRIMARY KEY)")
    finally:
        drop()  # closes the connection and drops the database
```

When it is constructed, `OnInstanceFactory` calls your callable with
`"postgres"` and checks, with `SELECT current_database();`, that the
connection really is on that database. It keeps this root connection and runs
`CREATE DATABASE` and `DROP DATABASE` through it. Leaving the `with` block (or
calling `close()`) closes the root connection.

`create()` creates a new database, connects to it through your callable,
checks that the new connection is on the new database, and creates the
metadata schema and table with one row holding `db_created_at`. It returns the
connection and a `drop` callable that closes the connection and drops the
database.

Because `CREATE DATABASE` and `DROP DATABASE` cannot run inside a transaction
block, the connections your callable returns must be in autocommit mode.

### Options

All options are keyword-only arguments of `OnInstanceFactory`:

- `db_prefix`: prefix for temporary database names, default
  `pgschemadifftmp_` (`DEFAULT_ON_INSTANCE_DB_PREFIX`). It must match
  `SIMPLE_IDENTIFIER_REGEX` (`^[a-z_][a-z0-9_$]*$`); otherwise `TempDbError`
  is raised before any connection is opened.
- `metadata_schema`: schema holding the metadata table, default
  `pgschemadifftmp_metadata` (`DEFAULT_ON_INSTANCE_METADATA_SCHEMA`).
- `metadata_table`: name of the metadata table, default `metadata`
  (`DEFAULT_ON_INSTANCE_METADATA_TABLE`).

  Schema and table names are always quoted, so they are used exactly as given,
  spaces and capitals included.
- `logger`: an object with an `error` method, such as a `logging.Logger`. It
  reports a failed automatic drop. The default is the module's own logger.

### Errors

`TempDbError` is raised when:

- the prefix is not a simple identifier;
- a connection is on a different database than expected (the message contains
  `connection pool is on database ..., expected ...`);
- `drop_temp_database` is given a name that does not start with the prefix
  (`drop non-temporary database: ...`).

Errors from your driver are passed through unchanged.

### Safety

`drop_temp_database(db_name)` refuses to drop any database whose name does not
start with the configured prefix. If `create()` fails after the database has
been created, it closes the new connection and tries to drop the database
before re-raising the error. If that drop fails too, the failure is logged.

### Helpers

The module `pgtempdb.factory` also provides:

- `is_simple_identifier(name)`: whether a name matches
  `SIMPLE_IDENTIFIER_REGEX` and can be used unquoted.
- `sanitize_identifier(*parts)`: quotes each part, doubles embedded quotes,
  strips NUL characters and joins the parts with dots, for example
  `"schema"."table"`.
- `assert_conn_is_on_expected_database(conn, name)`: raises `TempDbError` if
  the connection is not on the named database.
- `Factory`: the abstract base class with `create()` and `close()`, usable as a
  context manager.

## What it does not do

The package has no command-line tool and no cleanup job. Temporary databases
can still be left behind, for example when the process is killed. To remove
them, drop old databases with the configured prefix yourself, and use the
metadata table's `db_created_at` column to decide which ones are old.

## Running the tests

```
pip install -e ".[test]"
pytest
```