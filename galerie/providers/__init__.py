"""Clients for external services (Horizon, Coingecko, MoonPay, Pinata) and SDK contracts."""
