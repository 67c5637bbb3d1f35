"""taskledger - chores, recurrence and a points ledger for households."""
