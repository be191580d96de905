"""HTTP layer: middleware and routers."""
