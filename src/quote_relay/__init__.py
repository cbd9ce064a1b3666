"""Real-time quote distribution and price-alert engine for the market dashboard."""
