"""
SQL dialect differences between the embedded and client-server engines.

Business SQL is written once with `?` placeholders and asks the dialect for the
fragments that differ (current time, timestamp rendering, case-insensitive
search, upsert). The adapter calls `translate()` before handing SQL to its driver.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Sequence

LIKE_ESCAPE = "\\"

# Unicode-aware lower() registered on every SQLite connection; built-in LIKE folds ASCII only.
SQLITE_LOWER_FN = "ftm_lower"


def unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return (
        str(value)
        .replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def contains_pattern(keyword: str) -> str:
    return f"%{escape_like(keyword)}%"


class Dialect:
    """Shared fragments; subclasses override what their engine spells differently."""

    name = "generic"

    def now(self) -> str:
        return "CURRENT_TIMESTAMP"

    def render_ts(self, column: str) -> str:
        raise NotImplementedError

    def ci_contains(self, column: str) -> str:
        """Case-insensitive containment test; bind `contains_pattern(keyword)`."""
        raise NotImplementedError

    def prefix_match(self, column: str) -> str:
        """Literal prefix test without LIKE; bind `(len(prefix), prefix)`."""
        return f"substr({column}, 1, ?) = ?"

    def translate(self, sql: str) -> str:
        return sql

    @staticmethod
    def placeholders(count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def insert_ignore(self, table: str, columns: Sequence[str], conflict: Sequence[str]) -> str:
        raise NotImplementedError

    def upsert(
        self,
        table: str,
        columns: Sequence[str],
        conflict: Sequence[str],
        assignments: Mapping[str, str],
        where: str | None = None,
    ) -> str:
        """
        INSERT ... ON CONFLICT DO UPDATE.

        `assignments` maps column -> SQL expression; `excluded.<col>` refers to the
        proposed row. `where` restricts which conflicting rows get updated.
        """
        cols = ", ".join(columns)
        sets = ", ".join(f"{col} = {expr}" for col, expr in assignments.items())
        sql = (
            f"INSERT INTO {table} ({cols}) VALUES ({self.placeholders(len(columns))}) "
            f"ON CONFLICT ({', '.join(conflict)}) DO UPDATE SET {sets}"
        )
        if where:
            sql += f" WHERE {where}"
        return sql

    def select_ts_columns(self, columns: Iterable[str], alias: str = "") -> str:
        prefix = f"{alias}." if alias else ""
        return ", ".join(f"{self.render_ts(prefix + col)} AS {col}" for col in columns)


class SqliteDialect(Dialect):
    name = "sqlite"

    # Stored as 'YYYY-MM-DD HH:MM:SS.SSS' UTC so text order is time order.
    NOW_SQL = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

    def now(self) -> str:
        return self.NOW_SQL

    def render_ts(self, column: str) -> str:
        return f"strftime('%Y-%m-%dT%H:%M:%fZ', {column})"

    def ci_contains(self, column: str) -> str:
        fn = SQLITE_LOWER_FN
        return f"{fn}({column}) LIKE {fn}(?) ESCAPE '{LIKE_ESCAPE}'"

    def insert_ignore(self, table: str, columns: Sequence[str], conflict: Sequence[str]) -> str:
        return f"INSERT OR IGNORE INTO {table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))})"


class PostgresDialect(Dialect):
    name = "postgres"

    def now(self) -> str:
        return "CURRENT_TIMESTAMP"

    def render_ts(self, column: str) -> str:
        return f"TO_CHAR({column} AT TIME ZONE 'UTC', 'YYYY-MM-DD\"T\"HH24:MI:SS.MS\"Z\"')"

    def ci_contains(self, column: str) -> str:
        return f"{column} ILIKE ? ESCAPE '{LIKE_ESCAPE}'"

    def insert_ignore(self, table: str, columns: Sequence[str], conflict: Sequence[str]) -> str:
        return (
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({self.placeholders(len(columns))}) "
            f"ON CONFLICT ({', '.join(conflict)}) DO NOTHING"
        )

    def translate(self, sql: str) -> str:
        """Rewrite `?` placeholders to `$1..$n`, leaving quoted text untouched."""
        out: list[str] = []
        index = 0
        quote: str | None = None
        for ch in sql:
            if quote:
                out.append(ch)
                if ch == quote:
                    quote = None
                continue
            if ch in ("'", '"'):
                quote = ch
                out.append(ch)
            elif ch == "?":
                index += 1
                out.append(f"${index}")
            else:
                out.append(ch)
        return "".join(out)


def dialect_for(db_type: str) -> Dialect:
    if db_type == "postgres":
        return PostgresDialect()
    return SqliteDialect()
