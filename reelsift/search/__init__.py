"""Query building, classification, ranking and orchestration."""
