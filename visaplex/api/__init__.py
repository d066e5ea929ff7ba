"""HTTP host layer: routes, middleware, and rate limiting around the pipeline."""
