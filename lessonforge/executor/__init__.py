"""Execution engine for skill workflows.

Architecture (bottom-up):
- retry: Single skill invocation with retry, backoff and output validation
- templates: Resolves {{stepN.output.path}} placeholders in step inputs
- events: Per-workflow publish/subscribe of lifecycle events
- orchestrator: Workflow lifecycle, step sequencing, pause/resume/cancel
"""
