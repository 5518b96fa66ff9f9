"""DRIP: evaluates filter chains (`value | filter: arg | ...`) for template engines."""
