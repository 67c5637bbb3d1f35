"""HTTP interface for collaborators (UI, seeding tools)."""
