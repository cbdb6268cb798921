"""Configuration and logging utilities shared by the core and the bridge."""
