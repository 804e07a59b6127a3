"""Models package - immutable containers produced by the decode pipeline."""
from .flowdata import FlowData, Header, Metadata, Parameter

__all__ = [
    "FlowData",
    "Header",
    "Metadata",
    "Parameter",
]
