"""PiNode Labs rewards API."""
