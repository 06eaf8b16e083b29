"""kubeconverge: reconciliation core that converges Kubernetes objects toward a desired component."""

__version__ = "0.1.0"
