"""Domain layer: value objects, entities, ports and errors."""
