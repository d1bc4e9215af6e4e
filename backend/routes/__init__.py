"""HTTP routers; versioned APIs live in subpackages."""
