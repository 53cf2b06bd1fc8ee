"""Reference collaborators for the market core: token ledger, mock feed, registry."""
