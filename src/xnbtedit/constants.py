"""Centralized constants for xnbtedit.

This module contains the hardcoded constants used throughout the codebase.
Grouping them here makes it easier to find and modify default values.
"""

from __future__ import annotations

# =============================================================================
# Formats
# =============================================================================

# gzip header: ID1, ID2, CM=deflate
GZIP_MAGIC = b"\x1f\x8b\x08"
MAGIC_LENGTH = len(GZIP_MAGIC)

XML_SUFFIX = ".xml"
SNBT_SUFFIX = ".snbt"
TEXT_SUFFIXES = (XML_SUFFIX, SNBT_SUFFIX)

BACKUP_SUFFIX = ".backup"

# Deepest compound/list nesting accepted by the codec
MAX_NBT_DEPTH = 512

# Chunk size for streaming copies (backups, gzip recompression)
COPY_CHUNK_SIZE = 64 * 1024

# =============================================================================
# Concurrency
# =============================================================================

DEFAULT_BATCH_CONCURRENCY = 10  # Concurrent conversion jobs in bulk mode
DEFAULT_CODEC_WORKERS = 4  # Threads for CPU-bound codec passes

# =============================================================================
# Edit mode
# =============================================================================

# A write counts as finished once size and mtime are unchanged for this long
DEFAULT_STABILITY_THRESHOLD = 2.0  # seconds
DEFAULT_POLL_INTERVAL = 0.1  # seconds

TEMP_PREFIX = "xnbtedit-"

# =============================================================================
# Configuration / logging
# =============================================================================

CONFIG_FILENAME = "xnbtedit.json"
CONFIG_ENV_VAR = "XNBTEDIT_CONFIG"
LOG_DIR_ENV_VAR = "XNBTEDIT_LOG_DIR"

DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR = None  # File logging disabled unless configured
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"
