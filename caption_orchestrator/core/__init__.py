"""Workflow primitives and the caption orchestrator."""
