"""Pod Reaper - evicts pods that linger in a non-running phase."""
