"""
Process title used as a live "what is this worker doing" label.
"""

from collections.abc import Iterator
from contextlib import contextmanager

from setproctitle import getproctitle, setproctitle


class ProcessLabel:
    """
    Owns the process title.

    The idle title is the configured process name; while a job runs the title
    becomes "<name> (running <class_name>)".
    """

    def __init__(self, name: str | None = None):
        self.name = name or getproctitle()
        self.current = self.name

    def set(self, label: str) -> None:
        self.current = label
        setproctitle(label)

    def set_running(self, class_name: str) -> None:
        self.set(f"{self.name} (running {class_name})")

    def restore(self) -> None:
        self.set(self.name)

    @contextmanager
    def running(self, class_name: str) -> Iterator[None]:
        """Label the process as running class_name until the block exits."""
        self.set_running(class_name)
        try:
            yield
        finally:
            self.restore()
