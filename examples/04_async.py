"""
Example 04: Async Engine

This example demonstrates AsyncEngine with aiosqlite, including streaming
rows while they are fetched and statement timeouts.
"""

import asyncio

from typed_query import AsyncEngine, ConnectionConfig, QueryCancelledError


async def main():
    config = ConnectionConfig(driver="sqlite", database=":memory:")

    async with AsyncEngine.from_config(config) as engine:
        await engine.execute_non_query(engine.query("CREATE TABLE events (id INTEGER, kind TEXT)"))
        await engine.execute_transaction(
            [
                (
                    "INSERT INTO events VALUES (@id, @kind)",
                    [{"id": i, "kind": "click" if i % 2 else "view"} for i in range(10)],
                )
            ]
        )

        print("=== Async Engine ===\n")

        clicks = 0
        async for kind in engine.stream(
            engine.query("SELECT kind FROM events ORDER BY id"), lambda read: read.text("kind")
        ):
            clicks += kind == "click"
        print(f"Streamed clicks: {clicks}")

        slow = engine.query(
            "WITH RECURSIVE n(i) AS (SELECT 1 UNION ALL SELECT i + 1 FROM n) "
            "SELECT COUNT(*) FROM n"
        ).with_timeout(0.1)
        try:
            await engine.execute_scalar(slow)
        except QueryCancelledError as e:
            print(f"Timed out: {e}")


if __name__ == "__main__":
    asyncio.run(main())
