"""API subpackage - HTTP host for the pricing engine."""
