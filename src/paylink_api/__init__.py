"""HTTP surface for the PayU reconciliation core."""
