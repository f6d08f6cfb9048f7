from dataclasses import dataclass


@dataclass(frozen=True)
class TargetDescriptor:
    """What to resolve and where to publish it. Immutable once created."""
    source_uri: str              # Originating remote item, only used in log messages
    destination_path: str        # Where the link must end up
    expected_relative_path: str  # Location under the mount root once materialized

    def __post_init__(self):
        if not self.expected_relative_path or not self.expected_relative_path.strip("/\\"):
            raise ValueError("expected_relative_path must not be empty")
        if not self.destination_path:
            raise ValueError("destination_path must not be empty")
