"""Drift and verification engine, workspace verifier, and drift service."""

from gitvend.drift.engine import aggregate, classify, line_diff, summarize, verify
from gitvend.drift.hashing import HASH_PREFIX, hash_content, hash_extract
from gitvend.drift.models import (
    DependencyDrift,
    DriftFile,
    DriftReport,
    DriftResult,
    DriftStats,
    DriftStatus,
    DriftSummary,
    FileCheck,
    FileStatus,
    MappingVerification,
    VerifyReport,
    VerifyResult,
    VerifySummary,
)
from gitvend.drift.service import DriftError, DriftService, GitSourceReader
from gitvend.drift.verifier import verify_workspace

__all__ = [
    "HASH_PREFIX",
    "DependencyDrift",
    "DriftError",
    "DriftFile",
    "DriftReport",
    "DriftResult",
    "DriftService",
    "DriftStats",
    "DriftStatus",
    "DriftSummary",
    "FileCheck",
    "FileStatus",
    "GitSourceReader",
    "MappingVerification",
    "VerifyReport",
    "VerifyResult",
    "VerifySummary",
    "aggregate",
    "classify",
    "hash_content",
    "hash_extract",
    "line_diff",
    "summarize",
    "verify",
    "verify_workspace",
]
