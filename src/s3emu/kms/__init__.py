"""Simulated KMS key bookkeeping."""

from s3emu.kms.registry import KmsKeyRegistry

__all__ = ["KmsKeyRegistry"]
