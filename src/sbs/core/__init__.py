"""Core library for sbs: session model, store, status detection and reconciliation."""
