"""Query-time helpers: context access, value coercion, field resolution and filter compilation."""
