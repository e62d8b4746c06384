"""AG2 agents used by the repair pipeline."""
