"""Finalize engine: indices, allocator, uploader, sync gate, orchestrator."""
