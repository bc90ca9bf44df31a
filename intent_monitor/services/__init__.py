"""Device and network adapters for the monitor."""
