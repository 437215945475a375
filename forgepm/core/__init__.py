"""Installation engine: scanning, planning, editing and writing."""
