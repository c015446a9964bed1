"""Provisioning tool for the Crypto Trading Setup Analyzer VPS."""

APP_NAME: str = "Crypto Analyzer Setup"
VERSION: str = "1.0.0"
