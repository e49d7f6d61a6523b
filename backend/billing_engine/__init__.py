"""Billing Chain Engine: billing code chains, per-diem rounding and claim batches."""

__version__ = "0.1.0"
