"""Business services: the resilient model client and the trip pipeline."""
