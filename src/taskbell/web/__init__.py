"""HTTP surface: the sweep endpoint called by the external per-minute scheduler."""
