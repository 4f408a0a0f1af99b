"""Job state collaborators consumed by rule conditions."""
