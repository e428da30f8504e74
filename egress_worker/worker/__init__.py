"""
Worker module.
Contains queue membership, job consumption and the shutdown protocol.
"""

from egress_worker.worker.main import WorkerLoop, run

__all__ = ["WorkerLoop", "run"]
