"""Pure domain layer: lifecycle tables, identity, DTOs, validation."""
