"""Developer and operator tools for leasekeeper."""
