"""Category scoping and metadata."""
