"""
Example 03: Transactions and Batches

This example demonstrates execute_transaction, which runs statement groups
atomically, next to execute_many, which runs independent statements.
"""

from typed_query import ConnectionConfig, Engine, TransactionAbortedError, TypedQueryError


def main():
    config = ConnectionConfig(driver="sqlite", database=":memory:")

    with Engine.from_config(config) as engine:
        engine.execute_non_query(
            engine.query("CREATE TABLE accounts (id INTEGER PRIMARY KEY, balance REAL NOT NULL)")
        )

        print("=== Transactions ===\n")

        counts = engine.execute_transaction(
            [
                (
                    "INSERT INTO accounts (id, balance) VALUES (@id, @balance)",
                    [{"id": 1, "balance": 100.0}, {"id": 2, "balance": 50.0}],
                ),
            ]
        )
        print(f"Inserted rows per execution: {counts}")

        # The second group violates NOT NULL, so the transfer is undone
        try:
            engine.execute_transaction(
                [
                    ("UPDATE accounts SET balance = balance - 25 WHERE id = 1", []),
                    ("UPDATE accounts SET balance = NULL WHERE id = 2", []),
                ]
            )
        except TransactionAbortedError as e:
            print(f"Rolled back at group {e.group_index}, set {e.set_index}: {e.cause}")

        balance = engine.execute_scalar(engine.query("SELECT balance FROM accounts WHERE id = 1"))
        print(f"Balance of account 1 after rollback: {balance.value}\n")

        print("=== Independent batches ===\n")

        batch = engine.query_many(
            ["DELETE FROM accounts WHERE id = 2", "SELECT * FROM no_such_table"]
        )
        try:
            engine.execute_many(batch)
        except TypedQueryError as e:
            print(f"Statement {e.statement_index} failed: {e}")

        remaining = engine.execute_scalar(engine.query("SELECT COUNT(*) FROM accounts"))
        print(f"Accounts left (the DELETE was kept): {remaining.value}")


if __name__ == "__main__":
    main()
