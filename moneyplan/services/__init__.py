"""Budgeting engines: periods, sections, ledger, rollover and aggregates."""
