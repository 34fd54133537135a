"""Scoreboard domain services: ledger, scoring, undo and player registry.

This package holds the domain logic imported by HTTP routes and CLI
commands, keeping transport concerns separated from the ledger rules.
Every mutating service commits one transaction and only then publishes
its change event.
"""
