"""Metric processing pipeline for Kubernetes clusters: data model, processors, sinks and helpers."""

__version__ = "1.0.0"