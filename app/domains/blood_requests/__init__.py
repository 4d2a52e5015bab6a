"""Blood requests domain: intake, donor matching and acceptance."""
