SCHEMA_SQL = r"""
-- Ledger state: one JSON array per collection
-- (movements, analyses, suppliers, clients, products, services, production_orders)
CREATE TABLE IF NOT EXISTS state (
  key TEXT PRIMARY KEY,
  value TEXT NOT NULL,
  updated_at TEXT NOT NULL              -- ISO datetime (UTC)
);
"""
