"""Aggregate GitHub issues and Azure DevOps work items into one themes tree."""

__version__ = "0.1.0"
