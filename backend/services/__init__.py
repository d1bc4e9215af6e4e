"""Services: guard, postulation ledger, archival sweep and rating ledger over the repositories."""
