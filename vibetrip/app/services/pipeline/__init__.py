"""Four-stage trip planning pipeline: intent, discovery, optimization, refine."""
