"""Domain models: operations, holdings, rates, and quotes."""
