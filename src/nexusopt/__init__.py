"""nexusopt: League of Legends DFS lineup optimizer engine."""

__version__ = "0.1.0"
