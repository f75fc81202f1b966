"""Certificate signing request control."""

from .control import CSRControl
from .kube import KubeCSRControl
from .memory import InMemoryCSRControl, SigningRequest

__all__ = ["CSRControl", "KubeCSRControl", "InMemoryCSRControl", "SigningRequest"]
