"""
Example 02: Record Decoding

This example demonstrates building record decoders for dataclasses and
Pydantic models and looking them up through a DecoderRegistry.
"""

from dataclasses import dataclass

from pydantic import BaseModel

from typed_query import ConnectionConfig, DbKind, DecoderRegistry, Engine, decoder


@dataclass
class User:
    id: int
    name: str
    email: str | None


class Product(BaseModel):
    sku: str
    price: float


def main():
    config = ConnectionConfig(driver="sqlite", database=":memory:")
    registry = DecoderRegistry(
        [
            # auto_fields() infers the value kind of each attribute
            decoder(User).auto_fields().build(),
            # explicit fields rename columns
            decoder(Product)
            .field("sku", DbKind.TEXT, column="product_code")
            .field("price", DbKind.DOUBLE)
            .build(),
        ]
    )

    with Engine.from_config(config) as engine:
        engine.execute_many(
            engine.query_many(
                [
                    "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT)",
                    "INSERT INTO users VALUES (1, 'Alice', 'alice@example.com'), (2, 'Bob', NULL)",
                    "CREATE TABLE products (product_code TEXT, price REAL)",
                    "INSERT INTO products VALUES ('A-1', 9.99)",
                ]
            )
        )

        print("=== Record Decoding ===\n")

        users = engine.execute(engine.query("SELECT * FROM users"), registry.get(User))
        for user in users:
            print(f"  {user}")

        product = engine.execute_single_row(
            engine.query("SELECT * FROM products"), registry.get(Product)
        )
        print(f"\nProduct: {product!r}")

        # A NULL in a non-nullable field fails with the offending row index
        rows = engine.execute_table(engine.query("SELECT id, email AS name, email FROM users"))
        result = registry.parse_each_row(User, rows)
        print(f"\nDecoding NULL names: {result.error} (row {result.error.row_index})")


if __name__ == "__main__":
    main()
