"""Pure value objects and the injectable clock."""
