from __future__ import annotations


class TopologyConfigError(ValueError):
    """Raised before any link is installed when a topology cannot be built."""


class AddressSpaceExhausted(TopologyConfigError):
    """The subnet allocator has no index left for another link."""


class LatencyMatchError(RuntimeError):
    """A node received more packets than it has expected send times."""

    def __init__(self, node_id: int, received: int) -> None:
        super().__init__(
            f"node {node_id} has no expected send time left for receive #{received}"
        )
        self.node_id = node_id
        self.received = received
