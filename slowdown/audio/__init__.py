"""Audio capture, chunking and level metering."""
