"""VibeTrip itinerary gateway."""
