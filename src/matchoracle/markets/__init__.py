"""Market name grammar and thread grouping."""
