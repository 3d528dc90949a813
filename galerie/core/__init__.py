"""Wallet session core: keys, errors, adapters and session reconciliation."""
