"""Application version."""
APP_VERSION = "1.4.0"
