"""Shared utilities for sbs core (I/O, subprocess, time, paths, logging)."""
