"""
Example 01: Basic Query Execution

This example demonstrates statements, typed row readers and scalar reads
using TypedQuery's Engine on a temporary SQLite database.
"""

import tempfile
from pathlib import Path

from typed_query import ConnectionConfig, Engine, apply


def main():
    db_dir = Path(tempfile.mkdtemp())
    config = ConnectionConfig(driver="sqlite", database=str(db_dir / "example.db"))

    with Engine.from_config(config) as engine:
        engine.execute_non_query(
            engine.query(
                "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)"
            )
        )
        for name, email in [("Alice", "alice@example.com"), ("Bob", None)]:
            engine.execute_non_query(
                engine.query("INSERT INTO users (name, email) VALUES (@name, @email)")
                .parameters({"name": name, "email": email})
            )

        print("=== Basic Query Execution ===\n")

        # execute: map every row with typed accessors
        users = engine.execute(
            engine.query("SELECT id, name, email FROM users ORDER BY id"),
            lambda read: apply(
                lambda user_id, name, email: {"id": user_id, "name": name, "email": email},
                read.int("id"),
                read.text("name"),
                read.text_or_null("email"),
            ),
        )
        print(f"execute result ({len(users)} rows):")
        for user in users:
            print(f"  - {user['name']} ({user['email'] or 'no email'})")
        print()

        # execute_scalar: column 0 of row 0 as a DbValue
        count = engine.execute_scalar(engine.query("SELECT COUNT(*) FROM users"))
        print(f"execute_scalar result: {count.value} total users\n")

        # execute_safe: failures come back as Err instead of raising
        outcome = engine.execute_safe(
            engine.query("SELECT email FROM users ORDER BY id"),
            lambda read: read.text("email"),
        )
        print(f"execute_safe result: {outcome}")

    (db_dir / "example.db").unlink()
    db_dir.rmdir()


if __name__ == "__main__":
    main()
