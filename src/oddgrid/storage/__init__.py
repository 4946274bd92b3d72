"""DuckDB persistence: schema, markets, balances, positions, orders."""
