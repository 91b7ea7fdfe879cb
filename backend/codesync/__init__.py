"""CodeSync: real-time collaborative editing of shared files in rooms."""

__version__ = "0.1.0"
