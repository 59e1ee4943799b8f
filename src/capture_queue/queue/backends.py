"""Abstract consumers of the job descriptor stream.

The dispatcher fans every descriptor out to an ordered list of sinks. The
manifest writer is always first, so a descriptor is persisted before (or at
the latest while) it is handed to the worker pool.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, Sequence

if TYPE_CHECKING:
    from ..models import JobDescriptor


class DescriptorSink(ABC):
    """Consumer of job descriptors in emission order.

    Implementations:
    - ManifestWriter: appends each descriptor line to the manifest file
    - JobWorkerPool: runs each descriptor through the processing program
    """

    @abstractmethod
    def put(self, descriptor: "JobDescriptor") -> None:
        """Accept the next descriptor.

        Implementation notes:
        - Must preserve call order (submission order is the emission order)
        - May block (bounded channel) but must not reorder
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Flush and release resources; wait for outstanding work."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def fan_out(descriptors: Iterable["JobDescriptor"], sinks: Sequence[DescriptorSink]) -> int:
    """Feed every descriptor to every sink, in order. Returns the count."""
    count = 0
    for descriptor in descriptors:
        for sink in sinks:
            sink.put(descriptor)
        count += 1
    return count
