"""Core definitions shared across CarePod modules."""
