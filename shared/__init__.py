"""
Shared utilities for the coordinator and the processes embedding it.

- logging_config: logging setup for the coordinator and its store adapter
"""
