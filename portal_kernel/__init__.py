"""
Portal Kernel - provisioning request core

A request lifecycle engine for infrastructure provisioning with:
- Role and ownership gated transitions
- Single pending approval per request
- At-most-one-winner decisions and submissions
- Best-effort, append-only audit trail
"""

__version__ = "0.1.0"
