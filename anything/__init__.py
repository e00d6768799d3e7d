"""Group voting on places to eat, tallied by weekday and meal period."""
