"""Metal Credit Score engine: asset-backed credit scoring across metal and stable-asset platforms."""

__version__ = "0.1.0"
