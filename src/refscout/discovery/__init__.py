"""Two-track reviewer discovery: verify suggestions, discover from topic search."""

from refscout.discovery.orchestrator import DiscoveryOrchestrator
from refscout.discovery.progress import ProgressChannel

__all__ = ["DiscoveryOrchestrator", "ProgressChannel"]
