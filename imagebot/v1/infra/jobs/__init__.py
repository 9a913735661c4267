"""
Jobs infrastructure for background task processing.

This package provides a durable, bounded-concurrency job queue with:
- Database-backed job store with guarded status transitions
- Registry-based pluggable handlers with optional success/error hooks
- In-process scheduling passes that refill freed slots immediately
- Polling of externally executed tasks with a fixed attempt budget
"""
