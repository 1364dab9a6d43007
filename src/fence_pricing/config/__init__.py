"""Config subpackage - settings and environment loading."""
