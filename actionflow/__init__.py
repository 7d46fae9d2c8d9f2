"""
Actionflow - An async execution engine for visual action workflows.

Build graphs of trigger, AI, HTTP, log and conditional nodes, then run
them depth-first from the trigger with per-node retries and error policies.
"""

__version__ = "1.0.0"
