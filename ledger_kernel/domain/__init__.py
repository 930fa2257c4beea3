"""Pure domain layer: documents, posting DTOs, account resolution, money."""
