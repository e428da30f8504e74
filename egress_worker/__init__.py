"""
Egress Worker

A background worker that consumes jobs from per-address message queues and keeps
its queue membership in step with the IP addresses bound to the host.
"""

__version__ = "1.0.0"
