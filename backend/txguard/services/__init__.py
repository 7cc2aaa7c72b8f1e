"""External risk data provider integration."""
