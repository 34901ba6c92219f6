"""HTTP endpoints for payment registration and reports."""
