"""Logging and metrics for kubeconverge."""
