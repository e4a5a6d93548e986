"""HTTP surface for the detection engine."""
