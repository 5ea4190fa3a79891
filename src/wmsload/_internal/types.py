"""Shared type aliases for wmsload."""

from __future__ import annotations

from collections.abc import Collection

# HTTP headers dictionary.
Headers = dict[str, str]

# Metric tags attached to a request or sample.
Tags = dict[str, str]

# Acceptable status code(s) for a single request step.
StatusSpec = int | Collection[int]
