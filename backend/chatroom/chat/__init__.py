"""Chat event channel: stores, broadcast routing and transport."""
