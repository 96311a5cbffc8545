"""Small helpers shared across the step's modules."""
