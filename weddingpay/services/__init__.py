"""Pipeline services: pricing, customers, orders, gateway, reconciliation."""
