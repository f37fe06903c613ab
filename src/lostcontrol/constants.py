"""Constants for lostcontrol."""

# Format version written as the first line of every persisted file
CURRENT_CONFIG_VERSION = "0.0.5"

DEFAULT_BRANCH = "master"

# Repository descriptor (at the repository root)
DESCRIPTOR_FILE = ".lostcontrol.conf"

# Branch data root (at the repository root, one subdirectory per branch)
BRANCH_DATA_DIR = ".lostcontrol"

# Files inside BRANCH_DATA_DIR
SETTINGS_FILE = "config.yaml"
LOCK_FILE = ".lock"

# Project-level ignore patterns (gitignore syntax)
IGNORE_FILE = ".lostcontrolignore"

LEDGER_SUFFIX = ".conf"

# Display format for commit timestamps
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
