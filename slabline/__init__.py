"""Slabline: sales commission calculation and reconciliation service."""
